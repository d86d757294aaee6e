"""Progress tracking for generation jobs that outlive the tool call"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from errors import UnknownOperationError
from models.operation import Operation, OperationEvent, OperationStatus

logger = logging.getLogger("MCP_Server")


class OperationTracker:
    """Keeps a bounded event log per operation.

    Each operation is written only by the task running it, so the map needs
    no locking on the event loop. Operations live for the process lifetime;
    only their logs are capped.
    """

    def __init__(self):
        self._operations: Dict[str, Operation] = {}
        self._counter = itertools.count(1)

    def start(self, job_key: str, prefix: str = "OP", **details: Any) -> str:
        operation_id = f"{prefix}-{next(self._counter)}"
        self._operations[operation_id] = Operation(operation_id=operation_id, job_key=job_key)
        self.record(operation_id, OperationStatus.STARTED, **details)
        return operation_id

    def record(self, operation_id: str, status: OperationStatus, **details: Any) -> OperationEvent:
        operation = self.get(operation_id)
        status = OperationStatus(status)
        details_str = ", ".join(f"{key}: {value}" for key, value in details.items())
        message = f"Operation {operation_id} [{operation.job_key}] - {status.value}"
        if details_str:
            message = f"{message} - {details_str}"

        event = OperationEvent(
            status=status,
            details=dict(details),
            timestamp=datetime.now(timezone.utc),
            message=message,
        )
        operation.events.append(event)

        if status is OperationStatus.ERROR:
            logger.error(message)
        else:
            logger.info(message)
        return event

    def get(self, operation_id: str) -> Operation:
        operation = self._operations.get(operation_id)
        if operation is None:
            raise UnknownOperationError(f"Unknown operation '{operation_id}'")
        return operation

    def find(self, operation_id: str) -> Optional[Operation]:
        return self._operations.get(operation_id)

    def snapshot(self, operation_id: str) -> Dict[str, Any]:
        """Serializable view of an operation for the status tool"""
        operation = self.get(operation_id)
        latest = operation.events[-1] if operation.events else None
        return {
            "operation_id": operation.operation_id,
            "job": operation.job_key,
            "status": operation.status.value,
            "finished": operation.is_finished,
            "started_at": operation.started_at.isoformat(),
            "elapsed_seconds": round(operation.elapsed_seconds(), 1),
            "latest": latest.to_dict() if latest else None,
            "events": [event.to_dict() for event in operation.events],
        }

    def __len__(self) -> int:
        return len(self._operations)

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._operations
