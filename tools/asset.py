"""Asset listing tools and the resource views of the asset store"""

import logging
from typing import List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.types import Resource, ResourceTemplate

from errors import describe_error
from managers.asset_store import AssetStore
from models.asset import ASSET_URI_SCHEME, KNOWN_ASSET_TYPES

logger = logging.getLogger("MCP_Server")

ASSET_URI_TEMPLATE = f"{ASSET_URI_SCHEME}{{type}}/{{id}}"


def asset_resources(store: AssetStore) -> List[Resource]:
    """One MCP resource entry per stored file"""
    resources = []
    for record in store.list():
        resources.append(
            Resource(
                uri=record.resource_uri,
                name=record.asset_id,
                description=f"{record.asset_type or 'unknown'} asset from {record.origin or 'unknown'}",
                mimeType=record.mime_type,
                size=record.bytes_size,
            )
        )
    return resources


def asset_templates() -> List[ResourceTemplate]:
    return [
        ResourceTemplate(
            uriTemplate=ASSET_URI_TEMPLATE,
            name="Game Assets",
            description="Generated game assets addressed by type and file name",
        )
    ]


def read_asset(store: AssetStore, uri: str) -> List[ReadResourceContents]:
    """Stored bytes, MIME type derived from the extension.

    Bytes content goes out as a base64 blob. Raises AssetNotFoundError for
    malformed URIs, escapes and missing files.
    """
    content, mime_type = store.read(uri)
    logger.info(f"Serving asset {uri} ({len(content)} bytes, {mime_type})")
    return [ReadResourceContents(content=content, mime_type=mime_type)]


def register_asset_tools(mcp: FastMCP, app):
    """Register asset listing tools with the MCP server"""

    @mcp.tool()
    def list_assets(asset_type: Optional[str] = None) -> dict:
        """List stored game assets, optionally filtered by type.

        Args:
            asset_type: Optional type filter, e.g. "2d_asset", "3d_model", "3d_image"

        Returns:
            Asset records with their asset:// resource URIs.
        """
        try:
            records = app.asset_store.list(asset_type or None)
        except Exception as exc:
            logger.exception("Failed to list assets")
            return describe_error(exc)
        return {
            "assets": [record.to_dict() for record in records],
            "count": len(records),
            "known_types": list(KNOWN_ASSET_TYPES),
        }
