"""Backend-specific 3D generation pipelines"""

from typing import Dict, Type

from models.backend import BackendVariant
from workflows.base import Pipeline, PipelineHandles
from workflows.hunyuan3d import Hunyuan3DPipeline
from workflows.hunyuan3d_mini_turbo import Hunyuan3DMiniTurboPipeline
from workflows.instantmesh import InstantMeshPipeline

PIPELINES: Dict[BackendVariant, Type[Pipeline]] = {
    pipeline.variant: pipeline
    for pipeline in (InstantMeshPipeline, Hunyuan3DPipeline, Hunyuan3DMiniTurboPipeline)
}

__all__ = [
    "PIPELINES",
    "Hunyuan3DMiniTurboPipeline",
    "Hunyuan3DPipeline",
    "InstantMeshPipeline",
    "Pipeline",
    "PipelineHandles",
]
