"""Training routes: submit a streaming training run, cancel a remote job."""

import json
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from tuneforge.api.deps import (
    ApprovedUser,
    CancellationDep,
    LedgerDep,
    ProviderDep,
    SessionUserId,
    SettingsDep,
    enforce_content_length,
)
from tuneforge.core.exceptions import ValidationError
from tuneforge.core.logging import get_logger
from tuneforge.core.security import read_limited_body
from tuneforge.services import ProviderTrainingRequest, relay_stream

router = APIRouter(tags=["training"])
logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────────────────────────────────────

LoraRank = Literal[2, 4, 8, 16, 32]
BaseCheckpoint = Literal["tiny", "small", "base_plus", "large"]
Dataset = Literal["irPOLYMER", "visPOLYMER", "TIG", "MAZAK"]

REQUIRED_FIELDS = ("rank", "checkpoint", "dataset", "epochs")

_FIELD_MESSAGES = {
    "rank": "rank must be one of: 2, 4, 8, 16, 32",
    "checkpoint": "checkpoint must be one of: tiny, small, base_plus, large",
    "dataset": "dataset must be one of: irPOLYMER, visPOLYMER, TIG, MAZAK",
    "epochs": "epochs must be a number between 1 and 100",
    "fullfinetune": "fullfinetune must be a boolean",
}


class TrainingRequest(BaseModel):
    """Training configuration as submitted by the client."""

    model_config = ConfigDict(strict=True, extra="ignore")

    rank: LoraRank
    checkpoint: BaseCheckpoint
    dataset: Dataset
    epochs: int = Field(ge=1, le=100)
    fullfinetune: bool | None = False

    def for_provider(self, user_id: str, job_id: str) -> ProviderTrainingRequest:
        return ProviderTrainingRequest(
            user_id=user_id,
            job_id=job_id,
            full_finetune=bool(self.fullfinetune),
            lora_rank=self.rank,
            base_model=self.checkpoint,
            dataset=self.dataset,
            num_epochs=self.epochs,
        )


def parse_training_request(raw: bytes) -> TrainingRequest:
    """
    Decode and validate a training request body.

    Raises:
        ValidationError: invalid JSON, missing fields or out-of-range values
    """
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON in request body")

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "", 0)]
    if missing:
        raise ValidationError(
            "Missing required fields: rank, checkpoint, dataset, epochs",
            field=missing[0],
        )

    try:
        return TrainingRequest.model_validate(payload)
    except PydanticValidationError as e:
        field = str(e.errors()[0]["loc"][0]) if e.errors() else None
        raise ValidationError(_FIELD_MESSAGES.get(field, "Invalid training request"), field=field)


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/train", dependencies=[Depends(enforce_content_length)])
async def start_training(
    request: Request,
    user: ApprovedUser,
    ledger: LedgerDep,
    provider: ProviderDep,
    settings: SettingsDep,
):
    """
    Start a training run and stream the provider's event stream back.

    The job id in ``X-Job-Id`` is a prediction from the ledger count; no
    ledger row exists until the client reports completion.
    """
    raw = await read_limited_body(request, settings.security.max_body_bytes)
    config = parse_training_request(raw)

    job_id = await ledger.next_job_id(user.id)
    logger.info(
        "Submitting training job",
        user_id=user.id,
        job_id=job_id,
        rank=config.rank,
        checkpoint=config.checkpoint,
        dataset=config.dataset,
        epochs=config.epochs,
        fullfinetune=bool(config.fullfinetune),
    )

    upstream = await provider.open_training_stream(config.for_provider(user.id, job_id))

    return StreamingResponse(
        relay_stream(upstream, user.id, job_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Job-Id": job_id,
            "X-User-Id": user.id,
        },
    )


@router.post("/cancel")
async def cancel_training(
    user_id: SessionUserId,
    gateway: CancellationDep,
    body: Annotated[dict[str, Any], Body()],
):
    """Cancel the caller's remote job; answers with the provider's JSON."""
    return await gateway.cancel(user_id, body.get("userId"), body.get("jobId"))
