"""Dispatch 3D generation to the pipeline registered for the backend variant"""

import logging
from typing import Dict, Optional, Type

from errors import UnsupportedBackendError
from models.backend import BackendVariant, GenerationRequest, PipelineResult
from workflows import PIPELINES, Pipeline, PipelineHandles

logger = logging.getLogger("MCP_Server")


class WorkflowManager:
    """Static variant -> pipeline registry.

    Adding a backend means registering another :class:`Pipeline` subclass in
    ``workflows.PIPELINES``; nothing here branches on the variant.
    """

    def __init__(self, registry: Optional[Dict[BackendVariant, Type[Pipeline]]] = None):
        self._registry = dict(PIPELINES if registry is None else registry)
        self._instances: Dict[BackendVariant, Pipeline] = {}

    @property
    def supported_variants(self):
        return tuple(self._registry)

    def resolve(self, variant: BackendVariant) -> Pipeline:
        pipeline = self._instances.get(variant)
        if pipeline is not None:
            return pipeline
        pipeline_cls = self._registry.get(variant)
        if pipeline_cls is None:
            raise UnsupportedBackendError(f"Unsupported space type: {getattr(variant, 'value', variant)}")
        pipeline = self._instances[variant] = pipeline_cls()
        return pipeline

    async def run(self, variant: BackendVariant, request: GenerationRequest, handles: PipelineHandles) -> PipelineResult:
        pipeline = self.resolve(variant)
        logger.info(f"Processing operation {handles.operation_id} with {pipeline.label} pipeline")
        return await pipeline.run(request, handles)
