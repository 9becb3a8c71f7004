"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from tuneforge.config import Settings
from tuneforge.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    PayloadTooLargeError,
)
from tuneforge.core.logging import bind_context
from tuneforge.core.security import secret_matches, session_user_id
from tuneforge.db import get_session
from tuneforge.models import User
from tuneforge.services import (
    ArtifactStore,
    CancellationGateway,
    ComputeProvider,
    JobLedger,
    SignupNotifier,
)


# ─────────────────────────────────────────────────────────────────────────────
# Application components (built once in the app factory)
# ─────────────────────────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(request: Request) -> ComputeProvider:
    return request.app.state.provider


def get_artifact_store(request: Request) -> ArtifactStore:
    return request.app.state.artifacts


def get_notifier(request: Request) -> SignupNotifier:
    return request.app.state.notifier


SessionDep = Annotated[AsyncSession, Depends(get_session)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
ProviderDep = Annotated[ComputeProvider, Depends(get_provider)]
ArtifactStoreDep = Annotated[ArtifactStore, Depends(get_artifact_store)]
NotifierDep = Annotated[SignupNotifier, Depends(get_notifier)]


def get_ledger(session: SessionDep) -> JobLedger:
    return JobLedger(session)


def get_cancellation_gateway(provider: ProviderDep) -> CancellationGateway:
    return CancellationGateway(provider)


LedgerDep = Annotated[JobLedger, Depends(get_ledger)]
CancellationDep = Annotated[CancellationGateway, Depends(get_cancellation_gateway)]


# ─────────────────────────────────────────────────────────────────────────────
# Request limits
# ─────────────────────────────────────────────────────────────────────────────

async def enforce_content_length(request: Request, settings: SettingsDep) -> None:
    """Reject bodies whose declared size is over the limit before anything else runs."""
    declared = request.headers.get("content-length")
    limit = settings.security.max_body_bytes
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)


# ─────────────────────────────────────────────────────────────────────────────
# Authentication
# ─────────────────────────────────────────────────────────────────────────────

security = HTTPBearer(auto_error=False)


async def get_session_user_id(
    settings: SettingsDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Verified user id of the session. Raises 401 if not authenticated."""
    if not credentials:
        raise AuthenticationError("Unauthorized")
    user_id = session_user_id(credentials.credentials, settings.security)
    bind_context(user_id=user_id)
    return user_id


SessionUserId = Annotated[str, Depends(get_session_user_id)]


async def get_approved_user(user_id: SessionUserId, session: SessionDep) -> User:
    """
    Directory entry of the session user, which must be approved.

    Read on every request; approval is never cached in the session.
    """
    user = await session.get(User, user_id, populate_existing=True)
    if user is None:
        raise AuthorizationError("User not authorized to train models")
    if not user.approved:
        raise AuthorizationError(
            "Your account is pending admin approval. "
            "Please wait for approval before training models."
        )
    return user


ApprovedUser = Annotated[User, Depends(get_approved_user)]


# ─────────────────────────────────────────────────────────────────────────────
# Service-to-service and admin secrets
# ─────────────────────────────────────────────────────────────────────────────

async def require_webhook_secret(
    settings: SettingsDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    presented = credentials.credentials if credentials else None
    if not secret_matches(presented, settings.security.webhook_secret):
        raise AuthenticationError("Unauthorized")


async def require_admin(
    settings: SettingsDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    presented = credentials.credentials if credentials else None
    if not secret_matches(presented, settings.security.admin_secret):
        raise AuthenticationError("Invalid admin secret")
