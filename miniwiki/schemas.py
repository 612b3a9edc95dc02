from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


# =========================
# USER SCHEMAS
# =========================
class UserRead(BaseModel):
    id: int
    username: str

    model_config = ConfigDict(from_attributes=True)


# =========================
# PAGE SCHEMAS
# =========================
class PageView(BaseModel):
    id: int
    slug: str
    title: str
    content: str
    author_id: Optional[int] = None
    author_username: Optional[str] = None  # NULL when the author row is gone
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =========================
# COMMENT SCHEMAS
# =========================
class CommentView(BaseModel):
    id: int
    wiki_page_slug: str
    author_id: int
    author_username: str
    content: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
