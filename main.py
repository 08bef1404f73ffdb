import logging
from typing import Optional

from bson import ObjectId
from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from analytics import AnalyticsAggregator
from database import db, ensure_indexes
from errors import Internal, ServiceError, ValidationFailure
from feedback import FeedbackStore
from gate import AccessGate
from identity import IdentityStore
from logging_config import configure_logging
from notifier import EmailNotifier
from poems import Attachment, VaultEntryStore
from settings import Settings, get_settings

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Poetic Vault API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Services ----------

class Vault:
    """Every store wired to one database handle and one Settings object."""

    def __init__(self, database: Database, settings: Settings, object_store=None, notifier=None):
        self.settings = settings
        self.identities = IdentityStore(database, settings)
        self.poems = VaultEntryStore(database, settings, object_store)
        self.gate = AccessGate(database)
        self.feedback = FeedbackStore(database, notifier or EmailNotifier(settings))
        self.analytics = AnalyticsAggregator(database)


_vault: Optional[Vault] = None


def get_vault() -> Vault:
    global _vault
    if db is None:
        raise Internal("Database not available")
    if _vault is None:
        _vault = Vault(db, settings)
    return _vault


bearer = HTTPBearer(auto_error=False)


def current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    vault: Vault = Depends(get_vault),
) -> ObjectId:
    return vault.identities.resolve(credentials.credentials if credentials else None)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def read_pdf(pdf: Optional[UploadFile], max_bytes: int) -> Optional[Attachment]:
    """Attachment from an upload, reading at most one byte past `max_bytes` so the size check can reject it."""
    if pdf is None or not pdf.filename:
        return None
    return Attachment(data=pdf.file.read(max_bytes + 1), filename=pdf.filename, content_type=pdf.content_type)


# ---------- Error handling ----------

@app.exception_handler(ServiceError)
def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e["loc"] if p not in ("body", "query", "path")), "message": e["msg"]}
        for e in exc.errors()
    ]
    failure = ValidationFailure(errors)
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


@app.exception_handler(PyMongoError)
def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"kind": "Internal", "message": "Database error"})


# ---------- Schemas (API layer) ----------

class RegisterBody(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginBody(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UnlockBody(BaseModel):
    passcode: Optional[str] = None
    viewer_name: Optional[str] = None


class FeedbackCreate(BaseModel):
    poem_id: Optional[str] = None
    viewer_name: Optional[str] = None
    liked: Optional[bool] = None
    message: Optional[str] = None
    rating: Optional[int] = None


@app.on_event("startup")
def on_start():
    if db is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set; running without a database")
        return
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.warning("Could not create indexes: %s", e)


# ---------- Basic ----------

@app.get("/")
def root():
    return {"name": "Poetic Vault API", "status": "ok"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected"
            response["collections"] = db.list_collection_names()
    except PyMongoError as e:
        response["database"] = f"⚠️ {str(e)[:80]}"
    return response


# ---------- Auth ----------

@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterBody, vault: Vault = Depends(get_vault)):
    result = vault.identities.register(payload.username, payload.email, payload.password)
    return {"message": "Admin registered successfully", **result}


@app.post("/api/auth/login")
def login(payload: LoginBody, vault: Vault = Depends(get_vault)):
    result = vault.identities.authenticate(payload.email, payload.password)
    return {"message": "Login successful", **result}


@app.get("/api/auth/me")
def profile(admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return {"admin": vault.identities.profile(admin_id)}


# ---------- Poems ----------

@app.post("/api/poems", status_code=201)
def create_poem(
    title: Optional[str] = Form(None),
    passcode: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    pdf: Optional[UploadFile] = File(None),
    admin_id: ObjectId = Depends(current_admin),
    vault: Vault = Depends(get_vault),
):
    result = vault.poems.create(
        admin_id, title, passcode,
        content=content, author=author, category=category,
        attachment=read_pdf(pdf, vault.settings.max_pdf_bytes),
    )
    return {"message": "Poem created successfully", **result}


@app.get("/api/poems")
def list_poems(page: int = 1, limit: int = 10,
               admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return vault.poems.list(admin_id, page, limit)


@app.get("/api/poems/analytics")
def poem_analytics(admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return {"analytics": vault.analytics.summary(admin_id)}


@app.post("/api/poems/unlock")
def unlock_poem(payload: UnlockBody, request: Request, vault: Vault = Depends(get_vault)):
    poem = vault.gate.unlock(payload.passcode, payload.viewer_name, client_ip(request))
    return {"message": "Poem unlocked successfully", "poem": poem}


@app.post("/api/poems/unlock/{poem_id}")
def unlock_poem_by_id(poem_id: str, payload: UnlockBody, request: Request, vault: Vault = Depends(get_vault)):
    poem = vault.gate.unlock(payload.passcode, payload.viewer_name, client_ip(request), poem_id=poem_id)
    return {"message": "Poem unlocked successfully", "poem": poem}


@app.get("/api/poems/{poem_id}")
def get_poem(poem_id: str, admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return {"poem": vault.poems.get(admin_id, poem_id)}


@app.get("/api/poems/{poem_id}/qr")
def poem_qr(poem_id: str, admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return Response(content=vault.poems.qr_png(admin_id, poem_id), media_type="image/png")


@app.put("/api/poems/{poem_id}")
def update_poem(
    poem_id: str,
    title: Optional[str] = Form(None),
    passcode: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    pdf: Optional[UploadFile] = File(None),
    admin_id: ObjectId = Depends(current_admin),
    vault: Vault = Depends(get_vault),
):
    poem = vault.poems.update(
        admin_id, poem_id, title, passcode,
        content=content, author=author, category=category, is_active=is_active,
        attachment=read_pdf(pdf, vault.settings.max_pdf_bytes),
    )
    return {"message": "Poem updated successfully", "poem": poem}


@app.delete("/api/poems/{poem_id}")
def delete_poem(poem_id: str, admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    result = vault.poems.delete(admin_id, poem_id)
    return {"message": "Poem deleted successfully", **result}


# ---------- Feedback ----------

@app.post("/api/feedback", status_code=201)
def submit_feedback(payload: FeedbackCreate, request: Request, background_tasks: BackgroundTasks,
                    vault: Vault = Depends(get_vault)):
    feedback = vault.feedback.submit(
        payload.poem_id, payload.viewer_name, payload.liked,
        message=payload.message, rating=payload.rating,
        source_address=client_ip(request), schedule=background_tasks.add_task,
    )
    return {"message": "Feedback submitted successfully", "feedback": feedback}


@app.get("/api/feedback")
def list_feedback(poem_id: Optional[str] = None, page: int = 1, limit: int = 10,
                  admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return vault.feedback.list(admin_id, poem_id=poem_id, page=page, limit=limit)


@app.get("/api/feedback/stats")
def feedback_stats(admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    return {"stats": vault.feedback.stats(admin_id)}


@app.post("/api/feedback/reconcile")
def reconcile_feedback(admin_id: ObjectId = Depends(current_admin), vault: Vault = Depends(get_vault)):
    """Sweep feedback whose poem is gone. Orphans belong to no admin, so any signed-in admin may run it."""
    return {"removed": vault.feedback.purge_orphans()}


@app.patch("/api/feedback/{feedback_id}/read")
def mark_feedback_read(feedback_id: str, admin_id: ObjectId = Depends(current_admin),
                       vault: Vault = Depends(get_vault)):
    feedback = vault.feedback.mark_read(admin_id, feedback_id)
    return {"message": "Feedback marked as read", "feedback": feedback}


@app.delete("/api/feedback/{feedback_id}")
def delete_feedback(feedback_id: str, admin_id: ObjectId = Depends(current_admin),
                    vault: Vault = Depends(get_vault)):
    vault.feedback.delete(admin_id, feedback_id)
    return {"message": "Feedback deleted successfully"}
