import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from gradio_client import Client, handle_file
from huggingface_hub import InferenceClient
from PIL import Image

from errors import QuotaExceededError, RemoteCallError, TransientRemoteError
from retry import compute_quota_wait

logger = logging.getLogger("SpaceClient")

INFERENCE_PROVIDER = "hf-inference"


def classify_remote_error(exc: BaseException) -> RemoteCallError:
    """Wrap a backend failure, keeping its message, as quota or transient"""
    if isinstance(exc, RemoteCallError):
        return exc
    message = str(exc) or type(exc).__name__
    wait = compute_quota_wait(message)
    if wait is not None:
        return QuotaExceededError(message, wait_seconds=wait)
    return TransientRemoteError(message)


class SpaceClient:
    """Async facade over a gradio_client connection to one Hugging Face Space"""

    def __init__(self, space_id: str, client: Client):
        self.space_id = space_id
        self._client = client

    @classmethod
    async def connect(
        cls,
        space_id: str,
        hf_token: Optional[str] = None,
        auth: Optional[Tuple[str, str]] = None,
    ) -> "SpaceClient":
        logger.info(f"Connecting to Space {space_id}...")
        try:
            client = await asyncio.to_thread(
                Client,
                space_id,
                hf_token=hf_token,
                auth=auth,
                download_files=False,
                verbose=False,
            )
        except Exception as exc:
            raise TransientRemoteError(f"Failed to connect to Space {space_id}: {exc}") from exc
        logger.info(f"Connected to Space {space_id}")
        return cls(space_id, client)

    async def predict(self, api_name: str, *args: Any) -> List[Any]:
        """Call an endpoint; the result is always a list of output values."""
        logger.debug(f"Calling {self.space_id}{api_name}")
        try:
            result = await asyncio.to_thread(self._client.predict, *args, api_name=api_name)
        except Exception as exc:
            raise classify_remote_error(exc) from exc
        if isinstance(result, (list, tuple)):
            return list(result)
        return [result]

    async def view_api(self) -> Dict[str, Any]:
        """Endpoint manifest: ``{"named_endpoints": {...}, "unnamed_endpoints": {...}}``"""
        return await asyncio.to_thread(self._client.view_api, print_info=False, return_format="dict")

    @staticmethod
    def file_input(path: Union[str, Path]):
        return handle_file(str(path))


class ImageClient:
    """Text-to-image through the Hugging Face Inference API"""

    def __init__(self, hf_token: str, provider: str = INFERENCE_PROVIDER):
        self._client = InferenceClient(provider=provider, api_key=hf_token)

    async def text_to_image(self, prompt: str, model: str, num_inference_steps: int = 50) -> Image.Image:
        try:
            return await asyncio.to_thread(
                self._client.text_to_image,
                prompt,
                model=model,
                num_inference_steps=num_inference_steps,
            )
        except Exception as exc:
            raise classify_remote_error(exc) from exc
