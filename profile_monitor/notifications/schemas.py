"""Schema definitions for outgoing notifications and delivery outcomes."""

from dataclasses import dataclass
from typing import Literal

from profile_monitor.ingestion.schemas import MediaKind

DeliveryStatus = Literal["rich", "text", "failed"]

VALID_DELIVERY_STATUSES: frozenset[str] = frozenset({"rich", "text", "failed"})


@dataclass
class Notification:
    """
    A message to fan out to subscribers.

    When ``media_url`` is set the notifier first tries a rich (photo/video)
    delivery with ``text`` as caption, then falls back to ``fallback_text``
    (or ``text``) as a plain message.
    """

    text: str
    media_url: str | None = None
    media_kind: MediaKind | None = None
    fallback_text: str | None = None

    @property
    def is_rich(self) -> bool:
        return bool(self.media_url)


@dataclass
class DeliveryResult:
    """Per-target delivery outcome."""

    target: str
    status: DeliveryStatus

    def __post_init__(self) -> None:
        if self.status not in VALID_DELIVERY_STATUSES:
            raise ValueError(
                f"Invalid delivery status {self.status!r}. "
                f"Must be one of: {sorted(VALID_DELIVERY_STATUSES)}"
            )

    @property
    def delivered(self) -> bool:
        return self.status != "failed"
