"""Payload decoding and image utilities for stored assets"""

import base64
import json
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional, Tuple, Union

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("AssetProcessor")

DATA_URI_PATTERN = re.compile(r"^data:[^;,]+;base64,", re.IGNORECASE)
SNAPSHOT_LIMIT = 2000

MIME_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".obj": "model/obj",
    ".glb": "model/gltf-binary",
    ".json": "application/json",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(filename: str) -> str:
    """MIME type from the file extension; unknown extensions are generic binary"""
    lowered = filename.lower()
    for extension, mime_type in MIME_TYPES.items():
        if lowered.endswith(extension):
            return mime_type
    return DEFAULT_MIME_TYPE


# Closed set of shapes the store accepts. Pipelines hand over whatever the
# backend returned; decode_payload is the only place that inspects it.

@dataclass(frozen=True)
class BinaryPayload:
    data: bytes


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class RemoteRefPayload:
    url: str


@dataclass(frozen=True)
class StructuredPayload:
    value: Any


AssetPayload = Union[BinaryPayload, TextPayload, RemoteRefPayload, StructuredPayload]


def extract_file_url(value: Any) -> Optional[str]:
    """URL of a gradio FileData dict, either flat or wrapped in ``value``"""
    if not isinstance(value, dict):
        return None
    url = value.get("url")
    if isinstance(url, str) and url:
        return url
    nested = value.get("value")
    if isinstance(nested, dict):
        return extract_file_url(nested)
    return None


def decode_payload(data: Any) -> AssetPayload:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return BinaryPayload(bytes(data))
    if isinstance(data, str):
        if DATA_URI_PATTERN.match(data):
            return BinaryPayload(base64.b64decode(data.split(",", 1)[1]))
        return TextPayload(data)
    if isinstance(data, (list, tuple)) and len(data) == 1:
        return decode_payload(data[0])
    if isinstance(data, dict):
        url = extract_file_url(data)
        if url:
            return RemoteRefPayload(url)
        return StructuredPayload(data)
    if isinstance(data, (list, tuple)):
        return StructuredPayload(list(data))
    return TextPayload(str(data))


def payload_snapshot(data: Any, limit: int = SNAPSHOT_LIMIT) -> str:
    """Truncated, printable copy of a payload for error reports"""
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
        return f"<{len(raw)} bytes> {raw[:64].hex()}"
    try:
        text = json.dumps(data, default=str)
    except (TypeError, ValueError):
        text = repr(data)
    return text[:limit]


def fetch_asset_bytes(asset_url: str, token: Optional[str] = None, timeout: int = 120) -> bytes:
    """Download a remote output file, authenticating against private Spaces"""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        response = requests.get(asset_url, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        logger.error(f"Failed to fetch asset from {asset_url}: {e}")
        raise


def detect_image_format(image_bytes: bytes) -> Optional[str]:
    """Pillow format name (``PNG``, ``JPEG``...) or None for non-images"""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return img.format
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to identify image format: {e}")
        return None


def extension_for_format(image_format: Optional[str]) -> str:
    return "jpg" if image_format == "JPEG" else "png"


def convert_to_png(image_bytes: bytes) -> bytes:
    with Image.open(BytesIO(image_bytes)) as img:
        output = BytesIO()
        img.save(output, format="PNG")
        return output.getvalue()


def image_to_bytes(image: Image.Image) -> Tuple[bytes, str]:
    """Encode an inference result, keeping JPEG when that is what came back.

    Returns the encoded bytes and the file extension to store them under.
    """
    image_format = image.format if image.format in ("PNG", "JPEG") else "PNG"
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    output = BytesIO()
    image.save(output, format=image_format)
    return output.getvalue(), extension_for_format(image_format)
