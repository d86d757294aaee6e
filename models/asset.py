"""Asset data models"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

ASSET_URI_SCHEME = "asset://"

# Filename prefixes written by the tools and pipelines. Several contain an
# underscore, so listing matches these (longest first) before falling back to
# the first filename segment.
KNOWN_ASSET_TYPES = (
    "2d_asset",
    "3d_image",
    "3d_processed",
    "3d_multiview",
    "3d_model",
    "3d_debug",
)


@dataclass(frozen=True)
class AssetRecord:
    """A stored asset, derived entirely from its filename and file stats"""
    asset_id: str  # the filename
    asset_type: Optional[str]
    origin: Optional[str]
    mime_type: str
    bytes_size: int
    created_at: datetime
    storage_path: Path
    resource_uri: str

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "uri": self.resource_uri,
            "asset_type": self.asset_type,
            "origin": self.origin,
            "mime_type": self.mime_type,
            "size": self.bytes_size,
            "created": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class PersistResult:
    storage_path: Path
    resource_uri: str
    record: AssetRecord
