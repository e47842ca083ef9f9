"""Response models shared by several routers."""
import math
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class AuthorSummary(BaseModel):
    id: int
    username: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    id: int
    post_id: int
    content: str
    author: AuthorSummary
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostResponse(BaseModel):
    id: int
    title: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    author: AuthorSummary
    likes: List[int] = []
    comments: List[CommentResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def clamp_page(page: int, limit: int, default_limit: int, max_limit: int):
    """Normalise page/limit query values; returns (page, limit, offset)."""
    page = max(page or 1, 1)
    limit = min(limit if limit and limit > 0 else default_limit, max_limit)
    return page, limit, (page - 1) * limit


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def contains_pattern(term: str) -> str:
    """LIKE pattern matching term literally anywhere; use with escape="\\"."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
