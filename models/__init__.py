"""Data models for the game asset MCP server"""

from models.asset import AssetRecord, PersistResult
from models.backend import BackendVariant, CapabilityProbe, GenerationRequest, PipelineResult
from models.operation import Operation, OperationEvent, OperationStatus

__all__ = [
    "AssetRecord",
    "BackendVariant",
    "CapabilityProbe",
    "GenerationRequest",
    "Operation",
    "OperationEvent",
    "OperationStatus",
    "PersistResult",
    "PipelineResult",
]
