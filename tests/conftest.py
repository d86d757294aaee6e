"""Shared fixtures: in-memory stand-ins for the remote Space and inference API"""

from collections import deque
from pathlib import Path

import pytest
from PIL import Image

from managers.asset_store import AssetStore
from managers.defaults_manager import DefaultsManager
from managers.operation_tracker import OperationTracker
from managers.resource_notifier import ResourceNotifier
from retry import ResilientInvoker
from workflows.base import PipelineHandles


class FakeSpace:
    """Scripted replacement for backend_client.SpaceClient.

    ``responses`` maps an api_name to a list of outputs or an exception. A
    deque of those is consumed one entry per call.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def predict(self, api_name, *args):
        self.calls.append((api_name, args))
        response = self.responses.get(api_name, [])
        if isinstance(response, deque):
            response = response.popleft()
        if isinstance(response, BaseException):
            raise response
        return list(response)

    @staticmethod
    def file_input(path):
        return {"path": str(path)}

    def api_names(self):
        return [name for name, _ in self.calls]


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fetched_urls():
    return []


@pytest.fixture
def asset_store(tmp_path, fetched_urls):
    def fetcher(url):
        fetched_urls.append(url)
        return f"downloaded {url}".encode()

    return AssetStore(tmp_path / "assets", fetcher=fetcher)


@pytest.fixture
def defaults(tmp_path):
    return DefaultsManager(config_file=tmp_path / "config.json", environ={})


@pytest.fixture
def source_image(tmp_path) -> Path:
    path = tmp_path / "source.jpg"
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(path, format="JPEG")
    return path


@pytest.fixture
def make_handles(asset_store, defaults):
    """Build PipelineHandles around a FakeSpace with a started operation"""
    def _make(space, tracker=None, sleep=None):
        tracker = tracker or OperationTracker()
        operation_id = tracker.start("generate_3d_asset", prefix="3D")
        return PipelineHandles(
            space=space,
            store=asset_store,
            invoker=ResilientInvoker(sleep=sleep or FakeSleep()),
            tracker=tracker,
            notifier=ResourceNotifier(),
            defaults=defaults,
            operation_id=operation_id,
            tool_name="generate_3d_asset",
        )
    return _make
