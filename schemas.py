"""
Database Schemas for Poetic Vault

Each Pydantic model maps to a MongoDB collection with the lowercase class name.
- Admin -> "admin"
- Poem -> "poem" (AccessLogEntry is embedded in Poem.access_log)
- Feedback -> "feedback"
"""

from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

CATEGORIES = ("love", "friendship", "motivation", "nature", "other")
DEFAULT_CATEGORY = "other"
DEFAULT_AUTHOR = "Anonymous"


class Admin(BaseModel):
    username: str = Field(..., description="Unique login handle")
    email: str = Field(..., description="Unique, lowercased email address")
    password_hash: str = Field(..., description="bcrypt hash of the password")


class AccessLogEntry(BaseModel):
    viewer_name: str = Field(..., description="Name the viewer typed when unlocking")
    viewed_at: datetime = Field(..., description="Server time of the unlock")
    ip_address: Optional[str] = Field(None, description="Viewer source address")


class Poem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., description="Poem title")
    content: Optional[str] = Field(None, description="Poem body text")
    pdf_url: Optional[str] = Field(None, description="Public URL of the attached PDF")
    passcode: str = Field(..., description="Passcode viewers present to unlock")
    author: str = Field(DEFAULT_AUTHOR, description="Display name of the poet")
    category: str = Field(DEFAULT_CATEGORY, description="One of CATEGORIES")
    is_active: bool = Field(True, description="Inactive poems cannot be unlocked")
    view_count: int = Field(0, ge=0, description="Successful unlocks")
    access_log: List[AccessLogEntry] = Field(default_factory=list)
    created_by: ObjectId = Field(..., description="Owning admin id")


class Feedback(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    poem_id: ObjectId = Field(..., description="Poem the feedback is about")
    viewer_name: str = Field(..., description="Viewer display name")
    liked: bool = Field(..., description="Thumbs up / thumbs down")
    message: Optional[str] = Field(None, description="Free text, 500 chars max")
    rating: Optional[int] = Field(None, ge=1, le=5, description="Star rating (optional)")
    ip_address: Optional[str] = Field(None, description="Viewer source address")
    is_read: bool = Field(False, description="Set once the owner has seen it")
