from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


FORWARDED_ASYNC = "forwarded-async"


class Day(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Action(str, Enum):
    APPROVED = "approved"
    REGENERATED = "regenerated"

    @property
    def verb(self) -> str:
        """Imperative form used in routes and messages."""
        return "approve" if self is Action.APPROVED else "regenerate"


class ActionPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: str
    action: Action


class DeliveryOutcome(BaseModel):
    """Result of forwarding one payload to one destination.

    Exactly one of ``status``, ``error`` or ``info`` is set: a downstream
    response (any status code), a transport failure after all retries, or a
    fire-and-forget dispatch whose result the caller never sees.
    """

    model_config = ConfigDict(frozen=True)

    status: Optional[int] = None
    body: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[str] = None
    info: Optional[str] = None

    @classmethod
    def response(
        cls, status: int, body: bytes, content_type: Optional[str] = None
    ) -> "DeliveryOutcome":
        return cls(status=status, body=body, content_type=content_type)

    @classmethod
    def failure(cls, error: str) -> "DeliveryOutcome":
        return cls(error=error)

    @classmethod
    def forwarded_async(cls) -> "DeliveryOutcome":
        return cls(info=FORWARDED_ASYNC)

    @property
    def delivered(self) -> bool:
        """True when the downstream answered at all, whatever the status."""
        return self.status is not None

    @property
    def succeeded(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    @property
    def text(self) -> Optional[str]:
        """Body decoded for logs and reports; undecodable bytes are replaced."""
        if self.body is None:
            return None
        return self.body.decode("utf-8", errors="replace")

    def summary(self) -> Dict[str, Any]:
        summary = self.model_dump(exclude_none=True, exclude={"content_type", "body"})
        if self.body is not None:
            summary["body"] = self.text
        return summary
