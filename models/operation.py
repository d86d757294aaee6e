"""Operation tracking models"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict

MAX_OPERATION_EVENTS = 100


class OperationStatus(str, Enum):
    STARTED = "STARTED"
    PROCESSING = "PROCESSING"
    WAITING = "WAITING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class OperationEvent:
    status: OperationStatus
    details: Dict[str, Any]
    timestamp: datetime
    message: str

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
        }


@dataclass
class Operation:
    """A long-running job; its event log keeps only the newest entries"""
    operation_id: str
    job_key: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    events: Deque[OperationEvent] = field(
        default_factory=lambda: deque(maxlen=MAX_OPERATION_EVENTS)
    )

    @property
    def status(self) -> OperationStatus:
        if not self.events:
            return OperationStatus.STARTED
        return self.events[-1].status

    @property
    def is_finished(self) -> bool:
        return self.status in (OperationStatus.COMPLETED, OperationStatus.ERROR)

    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()
