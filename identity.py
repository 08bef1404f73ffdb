"""
IdentityStore: admin accounts, password checks and bearer tokens.

Tokens are HS256 JWTs carrying the admin id and an expiry. There is no
server-side revocation; a token is good until `exp`.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, parse_id, utcnow
from errors import Conflict, NotFound, Unauthorized
from schemas import Admin
from settings import Settings
from validation import check, validate_login, validate_registration

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def hash_password(plain: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, digest: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
    except ValueError:
        # malformed digest or over-long input
        return False


def public_profile(admin: dict) -> dict:
    return {"id": str(admin["_id"]), "username": admin["username"], "email": admin["email"]}


class IdentityStore:
    def __init__(self, database: Database, settings: Settings):
        self.admins = database["admin"]
        self.settings = settings
        self._secret = settings.jwt_secret
        if not self._secret:
            logger.warning("JWT_SECRET is not set; using a random secret, tokens will not survive a restart")
            self._secret = secrets.token_urlsafe(48)

    # ---------- tokens ----------

    def issue_token(self, admin_id) -> str:
        payload = {
            "id": str(admin_id),
            "exp": utcnow() + timedelta(days=self.settings.jwt_expires_days),
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def _verify_token(self, token: str) -> Optional[ObjectId]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            return None
        return parse_id(payload.get("id"))

    # ---------- operations ----------

    def register(self, username: str, email: str, password: str) -> dict:
        check(validate_registration(username, email, password))
        username = username.strip()
        email = email.strip().lower()

        if self.admins.find_one({"$or": [{"email": email}, {"username": username}]}):
            raise Conflict("Admin already exists with this email or username")

        admin = Admin(
            username=username,
            email=email,
            password_hash=hash_password(password, self.settings.bcrypt_rounds),
        )
        try:
            doc = create_document(self.admins.database, "admin", admin)
        except DuplicateKeyError:
            raise Conflict("Admin already exists with this email or username")

        logger.info("Registered admin %s", doc["_id"])
        return {"token": self.issue_token(doc["_id"]), "admin": public_profile(doc)}

    def authenticate(self, email: str, password: str) -> dict:
        check(validate_login(email, password))
        admin = self.admins.find_one({"email": email.strip().lower()})
        if not admin or not verify_password(password, admin["password_hash"]):
            logger.info("Failed login attempt")
            raise Unauthorized("Invalid email or password")
        return {"token": self.issue_token(admin["_id"]), "admin": public_profile(admin)}

    def resolve(self, token: Optional[str]) -> ObjectId:
        """Admin id behind a bearer token. Missing, expired, forged or orphaned tokens are Unauthorized."""
        if not token:
            raise Unauthorized("Not authorized, no token")
        admin_id = self._verify_token(token)
        if admin_id is None or self.admins.find_one({"_id": admin_id}, {"_id": 1}) is None:
            raise Unauthorized("Not authorized, token failed")
        return admin_id

    def profile(self, admin_id: ObjectId) -> dict:
        admin = self.admins.find_one({"_id": admin_id})
        if not admin:
            raise NotFound("Admin not found")
        return public_profile(admin)
