"""Admin routes, authenticated by the shared admin secret rather than a user session."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from tuneforge.api.deps import SessionDep, require_admin
from tuneforge.api.routes.users import ProfileFields
from tuneforge.core.exceptions import ConflictError, NotFoundError, ValidationError
from tuneforge.core.logging import get_logger
from tuneforge.models import User

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
logger = get_logger(__name__)


class ApproveRequest(BaseModel):
    userId: str = Field(min_length=1, max_length=255)


class CreateUserRequest(ProfileFields):
    id: str = Field(min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_-]+$")


def _user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "approved": user.approved,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("/pending-users")
async def list_pending_users(session: SessionDep):
    """Users awaiting approval, newest first."""
    result = await session.execute(
        select(User)
        .where(User.approved.is_(False))
        .order_by(User.created_at.desc())
    )
    return {
        "success": True,
        "pendingUsers": [_user_summary(u) for u in result.scalars().all()],
    }


@router.post("/approve-user")
async def approve_user(data: ApproveRequest, session: SessionDep):
    """Approve a pending user."""
    user = await session.get(User, data.userId)
    if user is None:
        raise NotFoundError("User")
    if user.approved:
        raise ValidationError("User is already approved", field="userId")

    user.approved = True
    await session.commit()
    logger.info("User approved", user_id=user.id)
    return {
        "success": True,
        "message": "User approved successfully",
        "user": _user_summary(user),
    }


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(data: CreateUserRequest, session: SessionDep):
    """Create a directory entry that is approved from the start."""
    existing = await session.execute(
        select(User.id).where(or_(User.id == data.id, User.email == data.email))
    )
    if existing.first() is not None:
        raise ConflictError("User with this id or email already exists")

    user = User(id=data.id, email=data.email, name=data.name, approved=True)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("User with this id or email already exists")
    await session.refresh(user)
    logger.info("Pre-approved user created", user_id=user.id)
    return {"success": True, "user": _user_summary(user)}
