"""Classify the configured Space into one of the supported backend variants"""

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from errors import DetectionFailure
from models.backend import BackendVariant, CapabilityProbe

logger = logging.getLogger("MCP_Server")

SPACE_ID_REGEX = re.compile(r"^[a-zA-Z0-9_-]+/[a-zA-Z0-9_-]+$")
DEFAULT_INTROSPECTION_TIMEOUT = 30.0

# Most specific first: "hunyuan3d-2mini" also contains "hunyuan".
NAME_TOKENS: Tuple[Tuple[Tuple[str, ...], BackendVariant], ...] = (
    (("hunyuan3d-2mini-turbo", "hunyuan3d-2mini", "hunyuan3dmini"), BackendVariant.HUNYUAN3D_MINI_TURBO),
    (("hunyuan",), BackendVariant.HUNYUAN3D),
    (("instantmesh",), BackendVariant.INSTANTMESH),
)

ENDPOINT_SIGNATURES: Tuple[Tuple[Tuple[str, ...], BackendVariant], ...] = (
    (("/check_input_image", "/make3d", "/generate_mvs", "/preprocess"), BackendVariant.INSTANTMESH),
    (("/on_gen_mode_change", "/on_decode_mode_change", "/on_export_click"), BackendVariant.HUNYUAN3D_MINI_TURBO),
    (("/shape_generation", "/generation_all"), BackendVariant.HUNYUAN3D),
)

SPACE_HELP = (
    "Set MODEL_SPACE to one of:\n"
    "1. A Hunyuan3D-2 space (containing \"hunyuan\" in the name)\n"
    "2. A Hunyuan3D-2mini-Turbo space (containing \"hunyuan3d-2mini\" in the name)\n"
    "3. An InstantMesh space (containing \"instantmesh\" in the name)"
)


class ManifestSource(Protocol):
    async def view_api(self) -> Dict[str, Any]: ...


def validate_space_format(space_id: str) -> bool:
    """``owner/name`` with both parts at least two characters long"""
    if not space_id or not SPACE_ID_REGEX.match(space_id):
        return False
    owner, name = space_id.split("/")
    return len(owner) >= 2 and len(name) >= 2


def detect_from_name(space_id: str) -> Optional[BackendVariant]:
    lowered = space_id.lower()
    for tokens, variant in NAME_TOKENS:
        if any(token in lowered for token in tokens):
            return variant
    return None


def build_probe(space_id: str, manifest: Optional[Dict[str, Any]]) -> CapabilityProbe:
    manifest = manifest or {}
    named = manifest.get("named_endpoints") or {}
    unnamed = manifest.get("unnamed_endpoints") or {}
    return CapabilityProbe(
        space_id=space_id,
        named_endpoints=frozenset(str(name) for name in named),
        unnamed_endpoints=frozenset(str(name) for name in unnamed),
    )


def detect_from_probe(probe: CapabilityProbe) -> Optional[BackendVariant]:
    """Named endpoints by exact name first, unnamed ones by substring after"""
    for endpoints, variant in ENDPOINT_SIGNATURES:
        if any(endpoint in probe.named_endpoints for endpoint in endpoints):
            return variant
    for endpoints, variant in ENDPOINT_SIGNATURES:
        if _any_substring(probe.unnamed_endpoints, (e.lstrip("/") for e in endpoints)):
            return variant
    return None


def _any_substring(names: Iterable[str], needles: Iterable[str]) -> bool:
    needles = tuple(needles)
    return any(needle in name for name in names for needle in needles)


async def detect_backend_variant(
    space_id: str,
    client: ManifestSource,
    timeout: float = DEFAULT_INTROSPECTION_TIMEOUT,
) -> BackendVariant:
    """Resolve the backend variant once at startup.

    Order: name heuristic, live ``view_api`` introspection bounded by
    ``timeout``, then the name heuristic again. Any failure, including an
    unresolved variant, raises :class:`DetectionFailure`; there is no default.
    """
    variant = detect_from_name(space_id)
    if variant:
        logger.info(f"Detected space type: {variant.value} (based on space name)")
        return variant

    logger.debug(f"No space type in name '{space_id}', inspecting API endpoints...")
    try:
        manifest = await asyncio.wait_for(client.view_api(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise DetectionFailure(
            f"Failed to detect space type: view_api call timed out after {timeout:.0f} seconds"
        ) from exc
    except Exception as exc:
        raise DetectionFailure(f"Failed to detect space type: {exc}. {SPACE_HELP}") from exc

    probe = build_probe(space_id, manifest)
    logger.debug(
        f"Available endpoints: named={sorted(probe.named_endpoints)} unnamed={sorted(probe.unnamed_endpoints)}"
    )
    variant = detect_from_probe(probe)
    if variant:
        logger.info(f"Detected space type: {variant.value} (based on API endpoints)")
        return variant

    variant = detect_from_name(space_id)
    if variant:
        logger.info(f"Detected space type: {variant.value} (based on space name fallback)")
        return variant

    message = f"Could not determine space type for '{space_id}' after API analysis. {SPACE_HELP}"
    logger.error(message)
    raise DetectionFailure(message)
