"""Per-request context carrying the correlation id."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any


class CorrelationAdapter(logging.LoggerAdapter):
    """Prefix every log record with the request's correlation id."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.extra['correlation_id']}] {msg}", kwargs


@dataclass(frozen=True)
class RequestContext:
    """Context for one logical request.

    The correlation id is assigned once when the context is created and
    cannot be reassigned. Pass the context down through every call that
    belongs to the same request.
    """

    correlation_id: str

    def __post_init__(self) -> None:
        if not self.correlation_id or not self.correlation_id.strip():
            raise ValueError("correlation_id cannot be empty")

    @classmethod
    def new(cls, correlation_id: str | None = None) -> "RequestContext":
        """Create a context, generating a correlation id if none is given."""
        return cls(correlation_id=correlation_id or uuid.uuid4().hex[:12])

    def logger(self, name: str) -> logging.LoggerAdapter:
        """Return a logger for module ``name`` tagged with this request."""
        return CorrelationAdapter(
            logging.getLogger(name), {"correlation_id": self.correlation_id}
        )
