"""Filesystem asset store addressed by asset:// URIs"""

import asyncio
import binascii
import json
import logging
import os
import re
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union

from asset_processor import (
    BinaryPayload,
    RemoteRefPayload,
    StructuredPayload,
    TextPayload,
    decode_payload,
    get_mime_type,
    payload_snapshot,
)
from errors import AssetNotFoundError, PersistenceError
from models.asset import ASSET_URI_SCHEME, KNOWN_ASSET_TYPES, AssetRecord, PersistResult

logger = logging.getLogger("MCP_Server")

RESOURCE_URI_REGEX = re.compile(r"^asset://(?:([^/]+)/)?([^/]+)$")
# {prefix}_{origin}_{timestamp}_{hex}.{ext}
FILENAME_TAIL_REGEX = re.compile(r"^(?P<head>.+)_(?P<timestamp>\d+)_(?P<token>[0-9a-f]+)(?:\.[^.]+)?$")
MAX_NAME_ATTEMPTS = 5

Fetcher = Callable[[str], bytes]


def canonicalize_path(path: Union[str, Path], must_exist: bool = True) -> Path:
    """Resolve path to absolute real path (handles symlinks).

    Raises:
        ValueError: If path cannot be resolved and must_exist=True
    """
    try:
        return Path(path).resolve(strict=must_exist)
    except (OSError, RuntimeError) as e:
        raise ValueError(f"Cannot resolve path {path}: {e}")


def is_within(child_path: Union[str, Path], parent_path: Union[str, Path], child_must_exist: bool = True) -> bool:
    """Check if child_path is within parent_path using real path resolution.

    Both paths are canonicalized (symlinks resolved) before comparison, which
    also defeats ``..`` segments and symlinked escapes.
    """
    try:
        child_real = canonicalize_path(child_path, must_exist=child_must_exist)
        parent_real = canonicalize_path(parent_path, must_exist=True)
        return child_real.is_relative_to(parent_real)
    except (ValueError, OSError):
        return False


def parse_resource_uri(uri: str) -> Optional[Tuple[Optional[str], str]]:
    """Split ``asset://{type}/{id}`` or ``asset://{id}`` into (type, id)"""
    match = RESOURCE_URI_REGEX.match(uri or "")
    if not match:
        return None
    asset_type, asset_id = match.groups()
    return asset_type, asset_id


def build_resource_uri(filename: str, asset_type: Optional[str]) -> str:
    if asset_type:
        return f"{ASSET_URI_SCHEME}{asset_type}/{filename}"
    return f"{ASSET_URI_SCHEME}{filename}"


def split_asset_name(filename: str) -> Tuple[Optional[str], Optional[str]]:
    """Derive (asset_type, origin) from a stored filename.

    Known type prefixes win, longest first, because they contain underscores
    themselves. Anything else falls back to the first underscore segment.
    """
    match = FILENAME_TAIL_REGEX.match(filename)
    head = match.group("head") if match else Path(filename).stem
    for asset_type in sorted(KNOWN_ASSET_TYPES, key=len, reverse=True):
        if head == asset_type:
            return asset_type, None
        if head.startswith(asset_type + "_"):
            return asset_type, head[len(asset_type) + 1:] or None
    parts = head.split("_", 1)
    if len(parts) == 1:
        return (parts[0] or None), None
    return parts[0] or None, parts[1] or None


def generate_unique_filename(prefix: str, extension: str, origin: str) -> str:
    timestamp = int(time.time() * 1000)
    token = secrets.token_hex(8)
    return f"{prefix}_{origin}_{timestamp}_{token}.{extension}"


class AssetStore:
    """Persists pipeline outputs under a single root directory"""

    def __init__(self, root: Union[str, Path], fetcher: Optional[Fetcher] = None):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.root = canonicalize_path(self.root)
        self._fetcher = fetcher
        logger.info(f"Initialized AssetStore at {self.root}")

    async def persist(self, data: Any, prefix: str, extension: str, origin: str) -> PersistResult:
        """Write ``data`` to a new uniquely named file and return its address."""
        if data is None:
            raise PersistenceError("No data provided to save")

        try:
            payload = decode_payload(data)
        except (binascii.Error, ValueError) as e:
            snapshot = payload_snapshot(data)
            logger.error(f"Undecodable payload for {prefix}: {e}; payload: {snapshot}")
            raise PersistenceError(f"Failed to decode payload: {e}", payload_snapshot=snapshot) from e
        content = await self._materialize(payload, data)

        for _ in range(MAX_NAME_ATTEMPTS):
            filename = generate_unique_filename(prefix, extension, origin)
            target = self.root / filename
            if not is_within(target, self.root, child_must_exist=False):
                raise PersistenceError(
                    f"Invalid file path - {target} escapes {self.root}",
                    payload_snapshot=payload_snapshot(data),
                )
            try:
                await asyncio.to_thread(self._write_exclusive, target, content)
            except FileExistsError:
                logger.debug(f"Filename collision on {filename}, regenerating")
                continue
            except OSError as e:
                snapshot = payload_snapshot(data)
                logger.error(f"Error saving {filename}: {e}; payload: {snapshot}")
                raise PersistenceError(f"Failed to save file from data: {e}", payload_snapshot=snapshot) from e
            record = self._build_record(target)
            logger.debug(f"Stored {record.asset_id} ({record.bytes_size} bytes)")
            return PersistResult(storage_path=target, resource_uri=record.resource_uri, record=record)

        raise PersistenceError(f"Could not allocate a unique filename for prefix '{prefix}'")

    def list(self, type_filter: Optional[str] = None) -> List[AssetRecord]:
        """All stored assets, optionally only those of one derived type"""
        records = []
        for entry in sorted(self.root.iterdir()):
            try:
                if not entry.is_file():
                    continue
                record = self._build_record(entry)
            except FileNotFoundError:
                # Removed between iterdir() and stat().
                continue
            if type_filter and record.asset_type != type_filter:
                continue
            records.append(record)
        return records

    def resolve(self, uri: str) -> Path:
        """Map either URI form to the stored file, refusing anything outside the root."""
        parsed = parse_resource_uri(uri)
        if not parsed:
            raise AssetNotFoundError(f"Invalid resource URI format: {uri}")
        _, asset_id = parsed
        if asset_id in (".", "..") or os.sep in asset_id:
            raise AssetNotFoundError(f"Invalid resource path - {uri}")
        path = self.root / asset_id
        if not is_within(path, self.root, child_must_exist=False):
            raise AssetNotFoundError(f"Invalid resource path - security violation: {uri}")
        if not path.is_file():
            raise AssetNotFoundError(f"Asset not found: {uri}")
        return path

    def read(self, uri: str) -> Tuple[bytes, str]:
        path = self.resolve(uri)
        return path.read_bytes(), get_mime_type(path.name)

    def get_record(self, uri: str) -> AssetRecord:
        return self._build_record(self.resolve(uri))

    async def _materialize(self, payload, original: Any) -> bytes:
        if isinstance(payload, BinaryPayload):
            return payload.data
        if isinstance(payload, TextPayload):
            return payload.text.encode("utf-8")
        if isinstance(payload, RemoteRefPayload):
            if self._fetcher is None:
                raise PersistenceError(
                    f"Cannot fetch {payload.url}: store has no fetcher",
                    payload_snapshot=payload_snapshot(original),
                )
            try:
                return await asyncio.to_thread(self._fetcher, payload.url)
            except Exception as e:
                raise PersistenceError(
                    f"Failed to save file from URL {payload.url}: {e}",
                    payload_snapshot=payload_snapshot(original),
                ) from e
        if isinstance(payload, StructuredPayload):
            return json.dumps(payload.value, indent=2, default=str).encode("utf-8")
        return str(original).encode("utf-8")

    @staticmethod
    def _write_exclusive(target: Path, content: bytes):
        with open(target, "xb") as handle:
            handle.write(content)

    def _build_record(self, path: Path) -> AssetRecord:
        stats = path.stat()
        asset_type, origin = split_asset_name(path.name)
        return AssetRecord(
            asset_id=path.name,
            asset_type=asset_type,
            origin=origin,
            mime_type=get_mime_type(path.name),
            bytes_size=stats.st_size,
            created_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
            storage_path=path,
            resource_uri=build_resource_uri(path.name, asset_type),
        )
