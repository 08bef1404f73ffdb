"""
Field validation for Poetic Vault.

Each validator returns every violated field as `{"field", "message"}` so a
client can fix a form in one round trip. `check()` turns a non-empty list
into a ValidationFailure. Nothing here touches the database.
"""

import re
from typing import Dict, List, Optional

from database import parse_id
from errors import ValidationFailure
from schemas import CATEGORIES

TITLE_MAX = 200
CONTENT_MAX = 10000
PASSCODE_MIN = 4
VIEWER_NAME_MAX = 100
MESSAGE_MAX = 500
USERNAME_MIN = 3
USERNAME_MAX = 50
PASSWORD_MIN = 6
PASSWORD_MAX_BYTES = 72
MAX_PAGE_LIMIT = 100

PDF_CONTENT_TYPES = ("application/pdf",)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Errors = List[Dict[str, str]]


def _err(field: str, message: str) -> Dict[str, str]:
    return {"field": field, "message": message}


def check(errors: Errors) -> None:
    if errors:
        raise ValidationFailure(errors)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_registration(username: Optional[str], email: Optional[str], password: Optional[str]) -> Errors:
    errors = []
    name = (username or "").strip()
    if not USERNAME_MIN <= len(name) <= USERNAME_MAX:
        errors.append(_err("username", f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters"))
    if not _EMAIL_RE.match((email or "").strip()):
        errors.append(_err("email", "Please provide a valid email"))
    if password is None or len(password) < PASSWORD_MIN:
        errors.append(_err("password", f"Password must be at least {PASSWORD_MIN} characters long"))
    elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.append(_err("password", f"Password must not exceed {PASSWORD_MAX_BYTES} bytes"))
    return errors


def validate_login(email: Optional[str], password: Optional[str]) -> Errors:
    errors = []
    if not _EMAIL_RE.match((email or "").strip()):
        errors.append(_err("email", "Please provide a valid email"))
    if not password:
        errors.append(_err("password", "Password is required"))
    return errors


def validate_poem(title: Optional[str], content: Optional[str], has_pdf: bool,
                  passcode: Optional[str], category: Optional[str]) -> Errors:
    errors = []
    if not 1 <= len((title or "").strip()) <= TITLE_MAX:
        errors.append(_err("title", f"Title must be between 1 and {TITLE_MAX} characters"))
    if not isinstance(passcode, str) or len(passcode) < PASSCODE_MIN:
        errors.append(_err("passcode", f"Passcode must be at least {PASSCODE_MIN} characters long"))
    if category is not None and category not in CATEGORIES:
        errors.append(_err("category", "Invalid category"))
    if content is not None and len(content) > CONTENT_MAX:
        errors.append(_err("content", f"Content must not exceed {CONTENT_MAX} characters"))
    if _blank(content) and not has_pdf:
        errors.append(_err("content", "Either content or a PDF is required"))
    return errors


def validate_pdf(content_type: Optional[str], size: int, max_bytes: int) -> Errors:
    errors = []
    if content_type not in PDF_CONTENT_TYPES:
        errors.append(_err("pdf", "Only PDF files are allowed"))
    if size > max_bytes:
        errors.append(_err("pdf", f"PDF must not exceed {max_bytes} bytes"))
    elif size == 0:
        errors.append(_err("pdf", "PDF is empty"))
    return errors


def validate_unlock(passcode: Optional[str], viewer_name: Optional[str]) -> Errors:
    errors = []
    if not isinstance(passcode, str) or not passcode:
        errors.append(_err("passcode", "Passcode is required"))
    if not 1 <= len((viewer_name or "").strip()) <= VIEWER_NAME_MAX:
        errors.append(_err("viewer_name", f"Viewer name must be between 1 and {VIEWER_NAME_MAX} characters"))
    return errors


def validate_feedback(poem_id, viewer_name: Optional[str], liked, message: Optional[str], rating) -> Errors:
    errors = []
    if parse_id(poem_id) is None:
        errors.append(_err("poem_id", "Invalid poem ID"))
    if not 1 <= len((viewer_name or "").strip()) <= VIEWER_NAME_MAX:
        errors.append(_err("viewer_name", f"Viewer name must be between 1 and {VIEWER_NAME_MAX} characters"))
    if not isinstance(liked, bool):
        errors.append(_err("liked", "Liked must be a boolean value"))
    if message is not None and len(message) > MESSAGE_MAX:
        errors.append(_err("message", f"Message must not exceed {MESSAGE_MAX} characters"))
    if rating is not None and (isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5):
        errors.append(_err("rating", "Rating must be between 1 and 5"))
    return errors


def validate_pagination(page, limit) -> Errors:
    errors = []
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        errors.append(_err("page", "Page must be a positive integer"))
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_LIMIT:
        errors.append(_err("limit", f"Limit must be between 1 and {MAX_PAGE_LIMIT}"))
    return errors
