"""InstantMesh: validate, remove background, multi-view, reconstruct"""

from typing import ClassVar

from errors import RemoteCallError
from models.backend import BackendVariant, GenerationRequest, PipelineResult
from workflows.base import Pipeline, PipelineHandles, clamp


class InstantMeshPipeline(Pipeline):
    variant = BackendVariant.INSTANTMESH
    label = "InstantMesh"

    SAMPLE_STEPS_RANGE: ClassVar[tuple] = (30, 75)
    DEFAULT_SAMPLE_STEPS: ClassVar[int] = 75
    DEFAULT_SEED: ClassVar[int] = 42

    async def run(self, request: GenerationRequest, handles: PipelineHandles) -> PipelineResult:
        space = handles.space
        source = space.file_input(request.source_image)

        self.progress(handles, "Validating image for 3D conversion")
        await self.call(handles, "/check_input_image", source)

        remove_background = handles.defaults.get_default("model3d", "remove_background") is not False
        self.progress(handles, "Preprocessing image", remove_background=remove_background)
        preprocessed = await self.call(handles, "/preprocess", source, remove_background)
        if not preprocessed or preprocessed[0] is None:
            raise RemoteCallError("Image preprocessing failed")
        processed = await self.save(handles, preprocessed[0], "3d_processed", "png")

        steps = handles.defaults.get_default("model3d", "steps")
        steps = clamp(steps if steps is not None else self.DEFAULT_SAMPLE_STEPS, *self.SAMPLE_STEPS_RANGE)
        seed = handles.defaults.get_default("model3d", "seed")
        seed = seed if seed is not None else self.DEFAULT_SEED
        self.progress(handles, "Generating multi-views", sample_steps=steps, seed=seed)
        views = await self.call(handles, "/generate_mvs", space.file_input(processed.storage_path), steps, seed)
        if not views or views[0] is None:
            raise RemoteCallError("Multi-view generation failed")
        await self.save(handles, views[0], "3d_multiview", "png")

        self.progress(handles, "Generating 3D models")
        models = await self.call(handles, "/make3d")
        if len(models) < 2:
            raise RemoteCallError("3D model generation failed: expected OBJ and GLB outputs")

        obj_result = await self.save(handles, models[0], "3d_model", "obj")
        glb_result = await self.save(handles, models[1], "3d_model", "glb")
        return PipelineResult(primary=obj_result, secondary=glb_result)
