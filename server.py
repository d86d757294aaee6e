import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Iterable, List, Optional, Sequence, Set

from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.types import Resource, ResourceTemplate

from asset_processor import fetch_asset_bytes
from backend_client import ImageClient, SpaceClient
from errors import ConfigurationError, GameAssetError
from managers import AssetStore, DefaultsManager, OperationTracker, RateLimiter, ResourceNotifier
from managers.capability_detector import SPACE_HELP, detect_backend_variant, validate_space_format
from managers.workflow_manager import WorkflowManager
from models.asset import ASSET_URI_SCHEME
from models.backend import BackendVariant
from retry import ResilientInvoker
from settings import SERVER_NAME, SERVER_VERSION, ServerConfig, configure_logging
from tools.asset import asset_resources, asset_templates, read_asset, register_asset_tools
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools
from tools.helpers import enhance_prompt
from tools.status import register_status_tools

logger = logging.getLogger("MCP_Server")

TRANSPORTS = ("stdio", "sse", "streamable-http")


@dataclass
class AppContext:
    """Process-wide services shared by every tool and background job"""
    config: ServerConfig
    defaults: DefaultsManager
    asset_store: AssetStore
    tracker: OperationTracker
    rate_limiter: RateLimiter
    notifier: ResourceNotifier
    invoker: ResilientInvoker
    image_client: ImageClient
    space_client: SpaceClient
    variant: BackendVariant
    workflow_manager: WorkflowManager
    started_at: float = field(default_factory=time.monotonic)
    background_tasks: Set[asyncio.Task] = field(default_factory=set)

    def spawn(self, coro) -> asyncio.Task:
        """Run a job detached from the calling request, holding a reference until it ends"""
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at


async def build_context(config: ServerConfig) -> AppContext:
    """Connect to the Space and resolve its backend once, before serving."""
    if not validate_space_format(config.model_space):
        raise ConfigurationError(f"Invalid MODEL_SPACE '{config.model_space}'. {SPACE_HELP}")
    config.ensure_directories()

    defaults = DefaultsManager()
    asset_store = AssetStore(config.assets_dir, fetcher=partial(fetch_asset_bytes, token=config.hf_token))
    space_client = await SpaceClient.connect(config.model_space, hf_token=config.hf_token, auth=config.gradio_auth)
    variant = await detect_backend_variant(config.model_space, space_client)

    workflow_manager = WorkflowManager()
    workflow_manager.resolve(variant)

    return AppContext(
        config=config,
        defaults=defaults,
        asset_store=asset_store,
        tracker=OperationTracker(),
        rate_limiter=RateLimiter(config.rate_limit, config.rate_window_seconds),
        notifier=ResourceNotifier(),
        invoker=ResilientInvoker(),
        image_client=ImageClient(config.hf_token),
        space_client=space_client,
        variant=variant,
        workflow_manager=workflow_manager,
    )


class GameAssetMCP(FastMCP):
    """FastMCP whose resource list is the live content of the asset store"""

    def __init__(self, app: AppContext, **settings):
        super().__init__(SERVER_NAME, **settings)
        self.app = app

    async def list_resources(self) -> List[Resource]:
        return list(await super().list_resources()) + asset_resources(self.app.asset_store)

    async def list_resource_templates(self) -> List[ResourceTemplate]:
        return list(await super().list_resource_templates()) + asset_templates()

    async def read_resource(self, uri) -> Iterable[ReadResourceContents]:
        if str(uri).startswith(ASSET_URI_SCHEME):
            return read_asset(self.app.asset_store, str(uri))
        return await super().read_resource(uri)


def create_server(app: AppContext) -> GameAssetMCP:
    mcp = GameAssetMCP(app, port=app.config.port)

    register_generation_tools(mcp, app)
    register_asset_tools(mcp, app)
    register_configuration_tools(mcp, app.defaults)
    register_status_tools(mcp, app)

    @mcp.prompt()
    def generate_2d_sprite(prompt: str) -> str:
        """Generate a 2D sprite from a description"""
        return f"Generate a 2D sprite: {enhance_prompt(prompt)}"

    @mcp.prompt()
    def generate_3d_model(prompt: str) -> str:
        """Generate a 3D model from a description"""
        return f"Generate a 3D model: {enhance_prompt(prompt)}"

    logger.info(f"{SERVER_NAME} {SERVER_VERSION} ready (backend: {app.variant.value})")
    return mcp


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MCP server generating 2D and 3D game assets on Hugging Face Spaces")
    parser.add_argument("work_dir", nargs="?", default=None, help="Directory holding assets/ and logs/ (default: cwd)")
    parser.add_argument("--transport", choices=TRANSPORTS, default="stdio", help="MCP transport (default: stdio)")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.DEBUG if args.debug else logging.INFO
    configure_logging(level=level)
    try:
        config = ServerConfig.from_env(args.work_dir, env_file=args.env_file)
        configure_logging(config.log_dir, level)
        logger.info(f"Working directory: {config.work_dir}")
        app = asyncio.run(build_context(config))
    except GameAssetError as exc:
        logger.error(f"Startup failed: {exc}")
        return 1

    mcp = create_server(app)
    logger.info(f"Starting MCP server on {args.transport} transport")
    mcp.run(transport=args.transport)
    return 0


if __name__ == "__main__":
    sys.exit(main())
