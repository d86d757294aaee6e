"""Shared plumbing for backend-specific 3D pipelines"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, List, Optional, Sequence

from asset_processor import extract_file_url
from errors import RemoteCallError
from managers.asset_store import AssetStore
from managers.defaults_manager import DefaultsManager
from managers.operation_tracker import OperationTracker
from managers.resource_notifier import ResourceNotifier
from models.asset import PersistResult
from models.backend import BackendVariant, GenerationRequest, PipelineResult
from models.operation import OperationStatus
from retry import ResilientInvoker, RetryCallback

logger = logging.getLogger("MCP_Server")


@dataclass
class PipelineHandles:
    """Everything a pipeline may touch while running one job"""
    space: Any  # backend_client.SpaceClient or a test double
    store: AssetStore
    invoker: ResilientInvoker
    tracker: OperationTracker
    notifier: ResourceNotifier
    defaults: DefaultsManager
    operation_id: str
    tool_name: str


def retry_recorder(tracker: OperationTracker, operation_id: str, stage: str) -> RetryCallback:
    """on_retry hook turning invoker retries into WAITING/PROCESSING events"""
    async def _record(exc: BaseException, attempt: int, wait: float, is_quota: bool):
        if is_quota:
            tracker.record(
                operation_id,
                OperationStatus.WAITING,
                step=stage,
                reason="GPU quota exceeded",
                wait_seconds=round(wait),
                attempt=attempt,
            )
        else:
            tracker.record(
                operation_id,
                OperationStatus.PROCESSING,
                step=stage,
                retry=attempt,
                delay_seconds=wait,
                error=str(exc),
            )
    return _record


def clamp(value: float, minimum: float, maximum: float):
    return max(minimum, min(maximum, value))


def pick_mesh(outputs: Sequence[Any]) -> Any:
    """Textured mesh (second output) when present, else the white mesh (first)"""
    if len(outputs) > 1 and extract_file_url(outputs[1]):
        return outputs[1]
    logger.warning("Textured mesh not found, falling back to white mesh")
    if outputs and extract_file_url(outputs[0]):
        return outputs[0]
    raise RemoteCallError("No valid mesh found in the response")


class Pipeline(ABC):
    """One backend's linear stage sequence from source image to mesh files"""

    variant: ClassVar[BackendVariant]
    label: ClassVar[str]
    stage_retries: ClassVar[int] = 3

    @abstractmethod
    async def run(self, request: GenerationRequest, handles: PipelineHandles) -> PipelineResult:
        ...

    def progress(self, handles: PipelineHandles, step: str, **details: Any):
        handles.tracker.record(handles.operation_id, OperationStatus.PROCESSING, step=step, **details)

    async def call(
        self,
        handles: PipelineHandles,
        api_name: str,
        *args: Any,
        max_retries: Optional[int] = None,
    ) -> List[Any]:
        """Call a Space endpoint through the resilient invoker"""
        async def _attempt():
            return await handles.space.predict(api_name, *args)

        return await handles.invoker.invoke(
            _attempt,
            max_retries=self.stage_retries if max_retries is None else max_retries,
            on_retry=retry_recorder(handles.tracker, handles.operation_id, api_name),
        )

    async def save(self, handles: PipelineHandles, data: Any, prefix: str, extension: str) -> PersistResult:
        """Persist an output and tell connected clients the resource list changed"""
        result = await handles.store.persist(data, prefix, extension, handles.tool_name)
        logger.info(f"{self.label}: {prefix} saved at {result.storage_path}")
        await handles.notifier.notify()
        return result
