from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from pydantic import BaseModel, Field
from typing import List, Optional

from app.api.deps import get_notifier
from app.api.schemas import CommentResponse, clamp_page, page_count
from app.db.database import get_db
from app.db.enums import NotificationType
from app.db.models import Comment, Post
from app.core.security import get_current_user
from app.services.notification_emitter import NotificationEmitter

router = APIRouter()


class CommentCreateRequest(BaseModel):
    content: str = Field(min_length=1)


class CommentUpdateRequest(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1)


class CommentPage(BaseModel):
    data: List[CommentResponse]
    total: int
    page: int
    pages: int


async def load_comment(db: AsyncSession, comment_id: int) -> Optional[Comment]:
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author))
        .where(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_post_comments(db: AsyncSession, post_id: int, page: int, limit: int) -> CommentPage:
    """Oldest-first page of a post's comments"""
    page, limit, offset = clamp_page(page, limit, default_limit=10, max_limit=50)

    total_result = await db.execute(select(func.count(Comment.id)).where(Comment.post_id == post_id))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author))
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .offset(offset)
        .limit(limit)
    )
    comments = result.scalars().all()

    return CommentPage(
        data=[CommentResponse.model_validate(c) for c in comments],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )


@router.get("/post/{post_id}", response_model=CommentPage)
async def get_post_comments(
    post_id: int,
    page: int = 1,
    limit: int = 10,
    db: AsyncSession = Depends(get_db)
):
    return await list_post_comments(db, post_id, page, limit)


@router.get("/social-post/{post_id}", response_model=CommentPage)
async def get_social_post_comments(
    post_id: int,
    page: int = 1,
    limit: int = 10,
    db: AsyncSession = Depends(get_db)
):
    """Same listing, served under the social-post path used by shared links"""
    return await list_post_comments(db, post_id, page, limit)


@router.post("/post/{post_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    request: CommentCreateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    result = await db.execute(select(Post).where(Post.id == post_id))
    post = result.scalar_one_or_none()
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")

    comment = Comment(post_id=post.id, author_id=current_user["user_id"], content=request.content)
    db.add(comment)
    await db.commit()
    comment_id = comment.id

    await notifier.notify(
        db,
        post.author_id,
        current_user["user_id"],
        NotificationType.comment,
        post_id=post.id,
    )

    comment = await load_comment(db, comment_id)
    return CommentResponse.model_validate(comment)


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    request: CommentUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    comment = await load_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Not found")
    if comment.author_id != current_user["user_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if request.content is not None:
        comment.content = request.content
    await db.commit()

    comment = await load_comment(db, comment_id)
    return CommentResponse.model_validate(comment)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    comment = await load_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Not found")
    if comment.author_id != current_user["user_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    await db.delete(comment)
    await db.commit()
    return {"ok": True}
