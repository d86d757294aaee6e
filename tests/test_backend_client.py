"""Tests for the remote client wrappers and downloads

Run with pytest from project root:
    pytest tests/test_backend_client.py -v
"""

import asyncio
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
import requests
from PIL import Image

from asset_processor import convert_to_png, detect_image_format, fetch_asset_bytes, image_to_bytes
from backend_client import ImageClient, SpaceClient, classify_remote_error
from errors import QuotaExceededError, TransientRemoteError


class TestClassifyRemoteError:
    """Tests for mapping backend exceptions"""

    def test_quota(self):
        error = classify_remote_error(RuntimeError("ZeroGPU quota exceeded. Please retry in 0:02:00"))
        assert isinstance(error, QuotaExceededError)
        assert error.wait_seconds == 121.0
        assert "retry in 0:02:00" in str(error)

    def test_transient(self):
        error = classify_remote_error(ConnectionError("reset"))
        assert isinstance(error, TransientRemoteError)
        assert str(error) == "reset"

    def test_already_classified(self):
        original = TransientRemoteError("x")
        assert classify_remote_error(original) is original


class TestSpaceClient:
    """Tests for SpaceClient with a mocked gradio Client"""

    def test_connect_passes_credentials(self):
        with patch("backend_client.Client") as client_cls:
            space = asyncio.run(SpaceClient.connect("tencent/Hunyuan3D-2", hf_token="hf_x", auth=("u", "p")))
        client_cls.assert_called_once_with(
            "tencent/Hunyuan3D-2", hf_token="hf_x", auth=("u", "p"), download_files=False, verbose=False
        )
        assert space.space_id == "tencent/Hunyuan3D-2"

    def test_connect_failure(self):
        with patch("backend_client.Client", side_effect=ValueError("Space not found")):
            with pytest.raises(TransientRemoteError) as exc_info:
                asyncio.run(SpaceClient.connect("nobody/nothing"))
        assert "Space not found" in str(exc_info.value)

    def test_predict_wraps_tuple(self):
        client = MagicMock()
        client.predict.return_value = ("a.obj", "b.glb")
        result = asyncio.run(SpaceClient("x/yy", client).predict("/make3d"))
        assert result == ["a.obj", "b.glb"]
        client.predict.assert_called_once_with(api_name="/make3d")

    def test_predict_single_value(self):
        client = MagicMock()
        client.predict.return_value = {"url": "u"}
        assert asyncio.run(SpaceClient("x/yy", client).predict("/preprocess", "img", True)) == [{"url": "u"}]
        client.predict.assert_called_once_with("img", True, api_name="/preprocess")

    def test_predict_quota_error(self):
        client = MagicMock()
        client.predict.side_effect = Exception("You have exceeded your GPU quota. Please retry in 0:00:30")
        with pytest.raises(QuotaExceededError) as exc_info:
            asyncio.run(SpaceClient("x/yy", client).predict("/generation_all"))
        assert exc_info.value.wait_seconds == 31.0

    def test_view_api(self):
        client = MagicMock()
        client.view_api.return_value = {"named_endpoints": {"/make3d": {}}}
        manifest = asyncio.run(SpaceClient("x/yy", client).view_api())
        assert "/make3d" in manifest["named_endpoints"]
        client.view_api.assert_called_once_with(print_info=False, return_format="dict")


class TestImageClient:
    """Tests for ImageClient with a mocked InferenceClient"""

    def test_text_to_image(self):
        with patch("backend_client.InferenceClient") as inference_cls:
            inference_cls.return_value.text_to_image.return_value = "image"
            client = ImageClient("hf_x")
            result = asyncio.run(client.text_to_image("sword", model="m/lora", num_inference_steps=30))
        inference_cls.assert_called_once_with(provider="hf-inference", api_key="hf_x")
        inference_cls.return_value.text_to_image.assert_called_once_with(
            "sword", model="m/lora", num_inference_steps=30
        )
        assert result == "image"

    def test_failure_classified(self):
        with patch("backend_client.InferenceClient") as inference_cls:
            inference_cls.return_value.text_to_image.side_effect = RuntimeError("model loading")
            client = ImageClient("hf_x")
            with pytest.raises(TransientRemoteError):
                asyncio.run(client.text_to_image("sword", model="m/lora"))


class TestDownloadsAndImages:
    """Tests for asset_processor network and image helpers"""

    def test_fetch_sends_bearer_token(self):
        response = MagicMock(content=b"mesh")
        with patch("asset_processor.requests.get", return_value=response) as get:
            assert fetch_asset_bytes("https://space/file=a.glb", token="hf_x") == b"mesh"
        get.assert_called_once_with(
            "https://space/file=a.glb", headers={"Authorization": "Bearer hf_x"}, timeout=120
        )

    def test_fetch_error_propagates(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        with patch("asset_processor.requests.get", return_value=response):
            with pytest.raises(requests.HTTPError):
                fetch_asset_bytes("https://space/file=missing.glb")

    def test_image_helpers(self):
        buffer = BytesIO()
        Image.new("RGB", (4, 4)).save(buffer, format="JPEG")
        jpeg = buffer.getvalue()
        assert detect_image_format(jpeg) == "JPEG"
        assert detect_image_format(b"not an image") is None
        assert detect_image_format(convert_to_png(jpeg)) == "PNG"

    def test_image_to_bytes_defaults_to_png(self):
        data, extension = image_to_bytes(Image.new("RGBA", (4, 4)))
        assert extension == "png"
        assert data.startswith(b"\x89PNG")
