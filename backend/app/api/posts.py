from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from pydantic import BaseModel
from typing import Optional, List

from app.api.deps import get_notifier
from app.api.schemas import AuthorSummary, CommentResponse, PostResponse, clamp_page, contains_pattern, page_count
from app.db.database import get_db
from app.db.enums import NotificationType
from app.db.models import Post, PostLike, Comment
from app.core.logging import api_logger
from app.core.security import get_current_user
from app.services.notification_emitter import NotificationEmitter

router = APIRouter()


class PostCreateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None


class PostUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None


class PostPage(BaseModel):
    data: List[PostResponse]
    total: int
    page: int
    pages: int


def _post_query():
    return select(Post).options(
        selectinload(Post.author),
        selectinload(Post.likes),
        selectinload(Post.comments).selectinload(Comment.author),
    )


def transform_post_to_response(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        image_url=post.image_url,
        author=AuthorSummary.model_validate(post.author),
        likes=[like.user_id for like in post.likes],
        comments=[CommentResponse.model_validate(c) for c in post.comments],
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


async def load_post(db: AsyncSession, post_id: int) -> Optional[Post]:
    """Fetch a post with author, likes and comments eagerly loaded."""
    result = await db.execute(
        _post_query()
        .where(Post.id == post_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@router.get("/", response_model=PostPage)
async def list_posts(
    page: int = 1,
    limit: int = 10,
    q: str = "",
    db: AsyncSession = Depends(get_db)
):
    """List posts newest first, optionally filtered by a text search"""
    page, limit, offset = clamp_page(page, limit, default_limit=10, max_limit=50)

    term = q.strip()
    condition = None
    if term:
        pattern = contains_pattern(term)
        condition = or_(
            Post.title.ilike(pattern, escape="\\"),
            Post.content.ilike(pattern, escape="\\"),
        )

    count_query = select(func.count(Post.id))
    query = _post_query()
    if condition is not None:
        count_query = count_query.where(condition)
        query = query.where(condition)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(Post.created_at.desc(), Post.id.desc()).offset(offset).limit(limit)
    )
    posts = result.scalars().all()

    return PostPage(
        data=[transform_post_to_response(p) for p in posts],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    post = Post(
        author_id=current_user["user_id"],
        title=request.title,
        content=request.content,
        image_url=request.image_url,
    )
    db.add(post)
    await db.commit()

    post = await load_post(db, post.id)
    return transform_post_to_response(post)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    post = await load_post(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Not found")
    return transform_post_to_response(post)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    request: PostUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    post = await load_post(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Not found")
    if post.author_id != current_user["user_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if request.title is not None:
        post.title = request.title
    if request.content is not None:
        post.content = request.content
    if request.image_url is not None:
        post.image_url = request.image_url
    await db.commit()

    post = await load_post(db, post_id)
    return transform_post_to_response(post)


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    post = await load_post(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Not found")
    if post.author_id != current_user["user_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    # Comments and likes go with the post (relationship cascade)
    await db.delete(post)
    await db.commit()
    return {"ok": True}


@router.post("/{post_id}/like", response_model=PostResponse)
async def toggle_like(
    post_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    """Like the post, or remove the like if the caller already liked it"""
    post = await load_post(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Not found")

    user_id = current_user["user_id"]
    existing = next((like for like in post.likes if like.user_id == user_id), None)

    if existing:
        await db.delete(existing)
        await db.commit()
    else:
        author_id = post.author_id
        db.add(PostLike(post_id=post_id, user_id=user_id))
        try:
            await db.commit()
        except IntegrityError:
            # A concurrent request already stored this like
            await db.rollback()
            api_logger.debug("Duplicate like ignored", post_id=post_id, user_id=user_id)
        else:
            await notifier.notify(db, author_id, user_id, NotificationType.like, post_id=post_id)

    post = await load_post(db, post_id)
    return transform_post_to_response(post)
