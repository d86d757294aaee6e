"""Hunyuan3D-2mini-Turbo: mode switch then generation_all with built-in background removal"""

import asyncio
import logging
from typing import ClassVar, Dict

from errors import RemoteCallError
from models.backend import BackendVariant, GenerationRequest, PipelineResult
from workflows.base import Pipeline, PipelineHandles, clamp, pick_mesh

logger = logging.getLogger("MCP_Server")


class Hunyuan3DMiniTurboPipeline(Pipeline):
    variant = BackendVariant.HUNYUAN3D_MINI_TURBO
    label = "Hunyuan3D-2mini-Turbo"

    MODE_DEFAULT_STEPS: ClassVar[Dict[str, int]] = {"Turbo": 5, "Fast": 10, "Standard": 20}
    STEPS_RANGE: ClassVar[tuple] = (1, 100)
    DEFAULT_GUIDANCE_SCALE: ClassVar[float] = 5.0
    DEFAULT_SEED: ClassVar[int] = 1234
    OCTREE_RANGE: ClassVar[tuple] = (16, 512)
    DEFAULT_OCTREE_RESOLUTION: ClassVar[int] = 256
    NUM_CHUNKS: ClassVar[int] = 8000
    GENERATION_RETRIES: ClassVar[int] = 5

    def parameters(self, handles: PipelineHandles) -> dict:
        defaults = handles.defaults
        mode = defaults.get_default("model3d", "turbo_mode")
        steps = defaults.get_default("model3d", "steps")
        if steps is None:
            steps = self.MODE_DEFAULT_STEPS.get(mode, self.MODE_DEFAULT_STEPS["Standard"])
        guidance_scale = defaults.get_default("model3d", "guidance_scale")
        seed = defaults.get_default("model3d", "seed")
        octree = defaults.get_default("model3d", "octree_resolution")
        return {
            "mode": mode,
            "steps": clamp(steps, *self.STEPS_RANGE),
            "guidance_scale": guidance_scale if guidance_scale is not None else self.DEFAULT_GUIDANCE_SCALE,
            "seed": seed if seed is not None else self.DEFAULT_SEED,
            "octree_resolution": clamp(
                int(octree) if octree is not None else self.DEFAULT_OCTREE_RESOLUTION, *self.OCTREE_RANGE
            ),
            "remove_background": defaults.get_default("model3d", "remove_background") is not False,
            "num_chunks": self.NUM_CHUNKS,
        }

    async def run(self, request: GenerationRequest, handles: PipelineHandles) -> PipelineResult:
        # No check_input_image or preprocess endpoints on this Space.
        source_bytes = await asyncio.to_thread(request.source_image.read_bytes)
        processed = await self.save(handles, source_bytes, "3d_processed", "png")

        params = self.parameters(handles)
        if params["mode"]:
            try:
                await self.call(handles, "/on_gen_mode_change", params["mode"], max_retries=0)
                logger.info(f"Set generation mode to {params['mode']}")
            except RemoteCallError as e:
                logger.warning(f"Failed to set generation mode: {e}")

        self.progress(handles, "Generating 3D model", **params)
        outputs = await self.call(
            handles,
            "/generation_all",
            request.prompt,
            handles.space.file_input(processed.storage_path),
            None, None, None, None,  # multi-view inputs: front, back, left, right
            params["steps"],
            params["guidance_scale"],
            params["seed"],
            params["octree_resolution"],
            params["remove_background"],
            params["num_chunks"],
            True,  # randomize_seed
            max_retries=self.GENERATION_RETRIES,
        )
        if not outputs:
            raise RemoteCallError("3D model generation failed")

        await self.save(handles, {"outputs": outputs}, "3d_debug", "json")

        mesh = pick_mesh(outputs)
        obj_result = await self.save(handles, mesh, "3d_model", "obj")
        glb_result = await self.save(handles, mesh, "3d_model", "glb")
        return PipelineResult(primary=obj_result, secondary=glb_result)
