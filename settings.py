"""Server configuration and logging setup"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from dotenv import load_dotenv

from errors import ConfigurationError

logger = logging.getLogger("MCP_Server")

SERVER_NAME = "game-asset-generator"
SERVER_VERSION = "1.0.0"

DEFAULT_PORT = 3000
DEFAULT_RATE_LIMIT = 10
DEFAULT_RATE_WINDOW_SECONDS = 60.0
LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide settings resolved once at startup"""
    work_dir: Path
    assets_dir: Path
    log_dir: Path
    hf_token: str
    model_space: str
    gradio_auth: Optional[Tuple[str, str]] = None
    port: int = DEFAULT_PORT
    rate_limit: int = DEFAULT_RATE_LIMIT
    rate_window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS

    @classmethod
    def from_env(cls, work_dir: Union[str, Path, None] = None, env_file: Optional[str] = None) -> "ServerConfig":
        """Load configuration from the environment (and a .env file if present)."""
        load_dotenv(env_file)

        root = Path(work_dir or os.getcwd()).resolve()
        hf_token = os.getenv("HF_TOKEN", "").strip()
        if not hf_token:
            raise ConfigurationError("HF_TOKEN is not set; see .env.example")
        model_space = os.getenv("MODEL_SPACE", "").strip()
        if not model_space:
            raise ConfigurationError("MODEL_SPACE is not set; see .env.example")

        username = os.getenv("GRADIO_USERNAME")
        password = os.getenv("GRADIO_PASSWORD")
        gradio_auth = (username, password) if username and password else None

        return cls(
            work_dir=root,
            assets_dir=root / "assets",
            log_dir=root / "logs",
            hf_token=hf_token,
            model_space=model_space,
            gradio_auth=gradio_auth,
            port=_env_number("PORT", DEFAULT_PORT, int),
            rate_limit=_env_number("RATE_LIMIT", DEFAULT_RATE_LIMIT, int),
            rate_window_seconds=_env_number("RATE_LIMIT_WINDOW", DEFAULT_RATE_WINDOW_SECONDS, float),
        )

    def ensure_directories(self):
        for directory in (self.work_dir, self.assets_dir, self.log_dir):
            directory.mkdir(parents=True, exist_ok=True)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def configure_logging(log_dir: Optional[Path] = None, level: int = logging.INFO):
    """Log to stderr (stdout belongs to the stdio transport) and to logs/server.log."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "server.log", encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
