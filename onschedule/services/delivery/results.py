"""Per-recipient delivery outcomes and batch summaries."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class NotificationResult:
    """Outcome of sending one notification to one recipient."""

    recipient: str
    channel: str
    provider: str
    success: bool
    message_id: str | None = None
    error: str | None = None
    rejected: bool = False  # primary provider refused the recipient (unauthorized/unverified)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "channel": self.channel,
            "provider": self.provider,
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
            "rejected": self.rejected,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class BatchSummary:
    """Aggregated outcomes of one reminder dispatch."""

    channel: str
    results: list[NotificationResult] = field(default_factory=list)
    fallback_count: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.success

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "fallback_count": self.fallback_count,
            "results": [r.to_dict() for r in self.results],
        }
