"""Event normalizer — raw push frames in, typed events (or nothing) out.

Learn: The push channel is noisy. Heartbeat acks, half-written frames
and legacy event names all arrive on the same socket. normalize_frame()
is the single filter between the transport and the rest of the client:

1. Not JSON, not an object, or no string "type" → discarded
2. "pong" → discarded (keepalive only, no domain meaning)
3. Legacy names → canonical names (events.types.ALIASES)
4. Everything else → EventFrame, even types we don't know yet

Nothing here raises. Deciding whether an event matters is the
reducer's job.
"""

from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from pedalsync.events.types import ALIASES, PONG

logger = structlog.get_logger()


class EventFrame(BaseModel):
    type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("data", mode="before")
    @classmethod
    def null_data(cls, value: Any) -> Any:
        return {} if value is None else value


def normalize_frame(raw: Union[str, bytes]) -> Optional[EventFrame]:
    """Decode one inbound frame. Returns None for anything not worth forwarding."""
    try:
        frame = EventFrame.model_validate_json(raw)
    except ValidationError as e:
        logger.debug("ws.frame_discarded", reason="malformed", errors=e.error_count())
        return None

    if frame.type == PONG:
        return None

    canonical = ALIASES.get(frame.type)
    if canonical:
        frame = frame.model_copy(update={"type": canonical})
    return frame
