"""Manager classes for the game asset MCP server"""

from managers.asset_store import AssetStore
from managers.defaults_manager import DefaultsManager
from managers.operation_tracker import OperationTracker
from managers.rate_limiter import RateLimiter
from managers.resource_notifier import ResourceNotifier

# workflow_manager is imported directly: workflows depends on this package.
__all__ = ["AssetStore", "DefaultsManager", "OperationTracker", "RateLimiter", "ResourceNotifier"]
