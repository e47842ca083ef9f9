from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import Optional, List

from app.api.schemas import AuthorSummary, UserResponse, contains_pattern
from app.db.database import get_db
from app.db.models import User
from app.core.security import get_current_user

router = APIRouter()


class UserUpdateRequest(BaseModel):
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


@router.get("/", response_model=List[AuthorSummary])
async def search_users(
    search: str = "",
    limit: int = 10,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Search users by username"""
    limit = min(max(limit, 1), 50)
    query = select(User)
    term = search.strip()
    if term:
        query = query.where(User.username.ilike(contains_pattern(term), escape="\\"))

    result = await db.execute(query.order_by(User.username).limit(limit))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="Not found")
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user["user_id"] != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="Not found")

    # Only profile fields are editable here
    if request.avatar_url is not None:
        user.avatar_url = request.avatar_url
    if request.bio is not None:
        user.bio = request.bio

    await db.commit()
    await db.refresh(user)
    return user
