"""Hunyuan3D-2: a single generation_all call after PNG conversion"""

import asyncio
from typing import ClassVar

from asset_processor import convert_to_png
from errors import RemoteCallError
from models.backend import BackendVariant, GenerationRequest, PipelineResult
from workflows.base import Pipeline, PipelineHandles, clamp, pick_mesh


class Hunyuan3DPipeline(Pipeline):
    variant = BackendVariant.HUNYUAN3D
    label = "Hunyuan3D-2"

    STEPS_RANGE: ClassVar[tuple] = (20, 50)
    DEFAULT_STEPS: ClassVar[int] = 20
    DEFAULT_GUIDANCE_SCALE: ClassVar[float] = 5.5
    DEFAULT_SEED: ClassVar[int] = 1234
    OCTREE_RESOLUTIONS: ClassVar[tuple] = ("256", "384", "512")
    DEFAULT_OCTREE_RESOLUTION: ClassVar[str] = "256"
    GENERATION_RETRIES: ClassVar[int] = 5

    def parameters(self, handles: PipelineHandles) -> dict:
        defaults = handles.defaults
        steps = defaults.get_default("model3d", "steps")
        guidance_scale = defaults.get_default("model3d", "guidance_scale")
        seed = defaults.get_default("model3d", "seed")
        octree = defaults.get_default("model3d", "octree_resolution")
        octree = str(octree) if octree is not None else None
        return {
            "steps": clamp(steps if steps is not None else self.DEFAULT_STEPS, *self.STEPS_RANGE),
            "guidance_scale": guidance_scale if guidance_scale is not None else self.DEFAULT_GUIDANCE_SCALE,
            "seed": seed if seed is not None else self.DEFAULT_SEED,
            "octree_resolution": octree if octree in self.OCTREE_RESOLUTIONS else self.DEFAULT_OCTREE_RESOLUTION,
            "remove_background": defaults.get_default("model3d", "remove_background") is not False,
        }

    async def run(self, request: GenerationRequest, handles: PipelineHandles) -> PipelineResult:
        self.progress(handles, "Converting image to PNG")
        source_bytes = await asyncio.to_thread(request.source_image.read_bytes)
        png_bytes = await asyncio.to_thread(convert_to_png, source_bytes)
        processed = await self.save(handles, png_bytes, "3d_processed", "png")

        params = self.parameters(handles)
        self.progress(handles, "Generating 3D model", **params)
        outputs = await self.call(
            handles,
            "/generation_all",
            request.prompt,
            handles.space.file_input(processed.storage_path),
            params["steps"],
            params["guidance_scale"],
            params["seed"],
            params["octree_resolution"],
            params["remove_background"],
            max_retries=self.GENERATION_RETRIES,
        )
        if len(outputs) < 2:
            raise RemoteCallError("3D model generation failed: insufficient data in response")

        glb_result = await self.save(handles, pick_mesh(outputs), "3d_model", "glb")
        # No separate OBJ output; the GLB stands in for both.
        return PipelineResult(primary=glb_result, secondary=glb_result)
