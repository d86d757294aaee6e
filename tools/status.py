"""Operation and server status tools"""

import logging

from mcp.server.fastmcp import FastMCP

from errors import describe_error
from settings import SERVER_NAME, SERVER_VERSION

logger = logging.getLogger("MCP_Server")


def register_status_tools(mcp: FastMCP, app):
    """Register status query tools with the MCP server"""

    @mcp.tool()
    def get_operation_status(operation_id: str) -> dict:
        """Get progress of a background generation job.

        Args:
            operation_id: ID returned by generate_3d_asset (e.g., "3D-1")

        Returns:
            Current status (STARTED, PROCESSING, WAITING, COMPLETED, ERROR), the
            latest event and the recent event log. Completed jobs include the
            obj_uri and glb_uri of the generated models.
        """
        try:
            return app.tracker.snapshot(operation_id)
        except Exception as exc:
            logger.warning(f"Status query failed for {operation_id}: {exc}")
            return describe_error(exc)

    @mcp.tool()
    def server_status() -> dict:
        """Report server health: uptime, version, 3D backend and job counts."""
        return {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "uptime_seconds": round(app.uptime_seconds(), 1),
            "model_space": app.config.model_space,
            "backend": app.variant.value,
            "operations": len(app.tracker),
            "running_jobs": len(app.background_tasks),
            "assets": len(app.asset_store.list()),
        }
