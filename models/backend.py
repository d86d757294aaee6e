"""Backend variant and generation request models"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import FrozenSet

from models.asset import PersistResult


class BackendVariant(str, Enum):
    """The Gradio Spaces this server knows how to drive"""
    INSTANTMESH = "instantmesh"
    HUNYUAN3D = "hunyuan3d"
    HUNYUAN3D_MINI_TURBO = "hunyuan3d_mini_turbo"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CapabilityProbe:
    """Evidence used to classify a Space; discarded once the variant is known"""
    space_id: str
    named_endpoints: FrozenSet[str] = field(default_factory=frozenset)
    unnamed_endpoints: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    variant: BackendVariant
    source_image: Path


@dataclass(frozen=True)
class PipelineResult:
    primary: PersistResult  # OBJ, or the GLB when the backend has no OBJ output
    secondary: PersistResult  # GLB
