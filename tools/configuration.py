"""Configuration tools for the game asset MCP server"""

import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from errors import describe_error

logger = logging.getLogger("MCP_Server")


def register_configuration_tools(mcp: FastMCP, defaults_manager):
    """Register configuration tools with the MCP server"""

    @mcp.tool()
    def get_defaults() -> dict:
        """Get current effective defaults for image and 3D model generation.

        Returns merged defaults from all sources (runtime, config, env, hardcoded).
        Unset 3D values mean the active backend's own default is used.
        """
        return defaults_manager.get_all_defaults()

    @mcp.tool()
    def set_defaults(
        model3d: Optional[Dict[str, Any]] = None,
        image: Optional[Dict[str, Any]] = None,
        persist: bool = False,
    ) -> dict:
        """Set runtime defaults for 3D model and/or image generation.

        Args:
            model3d: Optional dict of 3D defaults (e.g., {"steps": 30, "seed": 7, "turbo_mode": "Fast"})
            image: Optional dict of image defaults (e.g., {"model_2d": "...", "steps": 40})
            persist: If True, also write the values to ~/.config/game-asset-mcp/config.json.

        Returns:
            Success status and the applied values, or validation errors.
        """
        results = {}
        errors = []

        for namespace, values in (("model3d", model3d), ("image", image)):
            if not values:
                continue
            try:
                results[namespace] = defaults_manager.set_defaults(namespace, values)
                if persist:
                    defaults_manager.persist_defaults(namespace, values)
            except Exception as exc:
                logger.warning(f"Rejected {namespace} defaults {values}: {exc}")
                errors.append(describe_error(exc))

        if errors:
            return {"success": False, "errors": errors, "updated": results}
        return {"success": True, "updated": results}
