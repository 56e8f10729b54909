"""Cache usage events endpoint for the TRC API.

Events are validated and acknowledged, never persisted.
"""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Request, Response
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from trc.api.errors import bad_request
from trc.storage.models import is_valid_hash

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])


class CacheEvent(BaseModel):
    """A single cache hit/miss report from a build client."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: StrictStr = Field(alias="sessionId")
    source: Literal["LOCAL", "REMOTE"]
    event: Literal["HIT", "MISS"]
    hash: StrictStr
    duration: Annotated[float, Field(ge=0, strict=True, allow_inf_nan=False)] | None = None

    @field_validator("hash")
    @classmethod
    def hash_is_hex(cls, v: str) -> str:
        if not is_valid_hash(v):
            raise ValueError("Invalid artifact hash")
        return v


_CacheEvents = TypeAdapter(list[CacheEvent])


@router.post("/artifacts/events")
async def record_events(request: Request) -> Response:
    """Accept a batch of cache events.

    Returns:
        200 with an empty body.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise bad_request("Invalid request body") from e

    if not isinstance(payload, list):
        raise bad_request("Invalid request body")

    try:
        events = _CacheEvents.validate_python(payload)
    except ValidationError as e:
        raise bad_request("Invalid cache events") from e

    logger.debug("Received %d cache events", len(events))
    return Response(status_code=200)
