"""User directory routes: signup for approval and approval status."""

import re

from fastapi import APIRouter, BackgroundTasks
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tuneforge.api.deps import NotifierDep, SessionDep, SessionUserId
from tuneforge.core.exceptions import ConflictError, NotFoundError
from tuneforge.core.logging import get_logger
from tuneforge.models import User

router = APIRouter(prefix="/users", tags=["users"])
logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ─────────────────────────────────────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────────────────────────────────────

class ProfileFields(BaseModel):
    email: str = Field(max_length=255)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email format")
        return value


class SignupRequest(ProfileFields):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/signup")
async def signup(
    data: SignupRequest,
    user_id: SessionUserId,
    session: SessionDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """
    Register the session user in the directory, pending admin approval.

    The admin notification is sent after the response and cannot fail the
    signup.
    """
    user = await session.get(User, user_id)
    if user is not None:
        return {
            "success": True,
            "requiresApproval": not user.approved,
            "user": {"id": user.id, "email": user.email, "name": user.name},
        }

    taken = await session.execute(select(User.id).where(User.email == data.email))
    if taken.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")

    user = User(id=user_id, email=data.email, name=data.name, approved=False)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent signup took the id or email first
        await session.rollback()
        logger.warning("Signup lost a uniqueness race", user_id=user_id)
        raise ConflictError("User with this email already exists")
    logger.info("User signed up, awaiting approval", user_id=user_id)

    background_tasks.add_task(notifier.notify_signup, data.email, data.name)

    return {
        "success": True,
        "message": "Account created successfully. Please wait for admin approval before training models.",
        "requiresApproval": True,
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }


@router.get("/me/status")
async def approval_status(user_id: SessionUserId, session: SessionDep):
    """Whether the current user may train models."""
    user = await session.get(User, user_id, populate_existing=True)
    if user is None:
        raise NotFoundError("User")
    return {"approved": user.approved, "userId": user.id}
