"""Asset generation tools: 2D sprites inline, 3D models as background operations"""

import logging
import time
from typing import Optional

from mcp.server.fastmcp import Context, FastMCP

from asset_processor import image_to_bytes
from errors import PersistenceError, RemoteCallError, describe_error
from models.backend import GenerationRequest, PipelineResult
from models.operation import OperationStatus
from tools.helpers import begin_request, enhance_prompt, validate_prompt
from workflows.base import PipelineHandles, retry_recorder

logger = logging.getLogger("MCP_Server")

GENERATE_2D_TOOL = "generate_2d_asset"
GENERATE_3D_TOOL = "generate_3d_asset"
IMAGE_RETRIES = 3

THREE_D_STEPS = (
    "1. Generating initial 3D image from prompt\n"
    "2. Preparing the image for the 3D backend\n"
    "3. Generating the 3D model on the remote Space\n"
    "4. Saving the 3D models (OBJ and GLB)\n"
)


async def generate_source_image(app, prompt: str, model_key: str, operation_id: Optional[str] = None):
    """Text-to-image through the inference client, returned as (bytes, extension)"""
    image_model = app.defaults.get_default("image", model_key)
    steps = app.defaults.get_default("image", "steps")
    enhanced = enhance_prompt(prompt)
    logger.debug(f"Enhanced prompt for {image_model}: \"{enhanced}\"")

    on_retry = retry_recorder(app.tracker, operation_id, "text_to_image") if operation_id else None
    image = await app.invoker.invoke(
        lambda: app.image_client.text_to_image(enhanced, model=image_model, num_inference_steps=steps),
        max_retries=IMAGE_RETRIES,
        on_retry=on_retry,
    )
    if image is None:
        raise RemoteCallError("No image returned from image generation API")
    data, extension = image_to_bytes(image)
    return data, extension


def current_phase(tracker, operation_id: str) -> str:
    """Step named by the newest event that has one, else its status"""
    operation = tracker.get(operation_id)
    for event in reversed(operation.events):
        if "step" in event.details:
            return str(event.details["step"])
    return operation.status.value


async def run_3d_job(app, operation_id: str, prompt: str, tool_name: str = GENERATE_3D_TOOL) -> Optional[PipelineResult]:
    """Body of the detached 3D job; the tracker is its only output channel"""
    tracker = app.tracker
    started = time.monotonic()
    try:
        tracker.record(operation_id, OperationStatus.PROCESSING, step="Generating initial image")
        data, extension = await generate_source_image(app, prompt, "model_3d", operation_id)
        source = await app.asset_store.persist(data, "3d_image", extension, tool_name)
        await app.notifier.notify()
        tracker.record(
            operation_id, OperationStatus.PROCESSING,
            step="Initial image generated", path=str(source.storage_path),
        )

        request = GenerationRequest(prompt=prompt, variant=app.variant, source_image=source.storage_path)
        handles = PipelineHandles(
            space=app.space_client,
            store=app.asset_store,
            invoker=app.invoker,
            tracker=tracker,
            notifier=app.notifier,
            defaults=app.defaults,
            operation_id=operation_id,
            tool_name=tool_name,
        )
        tracker.record(
            operation_id, OperationStatus.PROCESSING,
            step="Processing with workflow", space_type=app.variant.value,
        )
        result = await app.workflow_manager.run(app.variant, request, handles)

        processing_time = round(time.monotonic() - started)
        tracker.record(
            operation_id,
            OperationStatus.COMPLETED,
            obj_uri=result.primary.resource_uri,
            glb_uri=result.secondary.resource_uri,
            obj_path=str(result.primary.storage_path),
            glb_path=str(result.secondary.storage_path),
            processing_time=f"{processing_time} seconds",
        )
        logger.info(f"Operation {operation_id} completed successfully in {processing_time} seconds")
        return result
    except Exception as exc:
        phase = current_phase(tracker, operation_id)
        logger.exception(f"Error in background processing for operation {operation_id}")
        details = {"error": str(exc), "error_type": type(exc).__name__, "phase": phase}
        if isinstance(exc, PersistenceError) and exc.payload_snapshot:
            details["payload_snapshot"] = exc.payload_snapshot
        tracker.record(operation_id, OperationStatus.ERROR, **details)
        return None


def register_generation_tools(mcp: FastMCP, app):
    """Register the 2D and 3D asset generation tools"""

    @mcp.tool()
    async def generate_2d_asset(prompt: str, ctx: Context) -> dict:
        """Generate a 2D game asset (e.g., pixel art sprite) from a text prompt.

        Args:
            prompt: Text description of the 2D asset (e.g., 'pixel art sword')

        Returns:
            The asset:// resource URI of the stored image.
        """
        try:
            begin_request(app, ctx)
            cleaned = validate_prompt(prompt)
            logger.info(f"Generating 2D asset with prompt: \"{cleaned}\"")
            data, extension = await generate_source_image(app, cleaned, "model_2d")
            result = await app.asset_store.persist(data, "2d_asset", extension, GENERATE_2D_TOOL)
            await app.notifier.notify()
            logger.info(f"2D asset saved at: {result.storage_path}")
            return {
                "resource_uri": result.resource_uri,
                "mime_type": result.record.mime_type,
                "bytes_size": result.record.bytes_size,
                "message": f"2D asset available at {result.resource_uri}",
            }
        except Exception as exc:
            logger.exception("Tool '%s' failed", GENERATE_2D_TOOL)
            return describe_error(exc)

    @mcp.tool()
    async def generate_3d_asset(prompt: str, ctx: Context) -> dict:
        """Generate a 3D game asset (OBJ and GLB models) from a text prompt.

        The work continues in the background after this call returns; poll
        get_operation_status with the returned operation_id for progress and
        the final asset:// URIs.

        Args:
            prompt: Text description of the 3D asset (e.g., 'isometric 3D castle')
        """
        try:
            begin_request(app, ctx)
            cleaned = validate_prompt(prompt)
        except Exception as exc:
            logger.warning(f"Rejected {GENERATE_3D_TOOL} call: {exc}")
            return describe_error(exc)

        operation_id = app.tracker.start(GENERATE_3D_TOOL, prefix="3D", prompt=cleaned)
        app.spawn(run_3d_job(app, operation_id, cleaned))
        operation = app.tracker.get(operation_id)
        return {
            "operation_id": operation_id,
            "status": OperationStatus.STARTED.value,
            "start_time": operation.started_at.isoformat(),
            "prompt": cleaned,
            "backend": app.variant.value,
            "message": (
                f"Starting 3D asset generation (Operation ID: {operation_id})...\n\n"
                f"This process involves several steps:\n{THREE_D_STEPS}\n"
                "This may take several minutes. Use get_operation_status to follow progress "
                "and retrieve the final model URIs."
            ),
        }
