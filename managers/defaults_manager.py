"""Defaults management for generation parameters"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from errors import ConfigurationError, ValidationError

logger = logging.getLogger("MCP_Server")

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "game-asset-mcp"
CONFIG_FILE = CONFIG_DIR / "config.json"

NAMESPACES = ("image", "model3d")
TURBO_MODES = ("Turbo", "Fast", "Standard")

# key -> (type, minimum, maximum); bounds are inclusive, None means unbounded
PARAMETER_RULES: Dict[str, Dict[str, tuple]] = {
    "image": {
        "model_2d": (str, None, None),
        "model_3d": (str, None, None),
        "steps": (int, 1, 100),
    },
    "model3d": {
        "steps": (int, 1, 100),
        "guidance_scale": (float, 0.0, 100.0),
        "seed": (int, 0, 10_000_000),
        "octree_resolution": (int, 16, 512),
        "remove_background": (bool, None, None),
        "turbo_mode": (str, None, None),
    },
}

ENV_VARIABLES = {
    "model3d": {
        "steps": "MODEL_3D_STEPS",
        "guidance_scale": "MODEL_3D_GUIDANCE_SCALE",
        "seed": "MODEL_3D_SEED",
        "octree_resolution": "MODEL_3D_OCTREE_RESOLUTION",
        "remove_background": "MODEL_3D_REMOVE_BACKGROUND",
        "turbo_mode": "MODEL_3D_TURBO_MODE",
    },
    "image": {
        "model_2d": "MODEL_2D_IMAGE_MODEL",
        "model_3d": "MODEL_3D_IMAGE_MODEL",
    },
}


def coerce_parameter(namespace: str, key: str, value: Any) -> Any:
    """Convert and range-check one parameter; raises ValidationError"""
    rules = PARAMETER_RULES.get(namespace, {})
    if key not in rules:
        raise ValidationError(f"Unknown {namespace} parameter '{key}'")
    if value is None:
        return None
    expected, minimum, maximum = rules[key]
    try:
        if expected is bool:
            if isinstance(value, str):
                coerced = value.strip().lower() in {"1", "true", "yes", "y"}
            else:
                coerced = bool(value)
        elif expected is int:
            coerced = int(float(value)) if isinstance(value, str) else int(value)
        elif expected is float:
            coerced = float(value)
        else:
            coerced = str(value).strip()
    except (TypeError, ValueError):
        raise ValidationError(f"{namespace}.{key} must be {expected.__name__}, got {value!r}")

    if minimum is not None and coerced < minimum:
        raise ValidationError(f"{namespace}.{key} must be >= {minimum}, got {coerced}")
    if maximum is not None and coerced > maximum:
        raise ValidationError(f"{namespace}.{key} must be <= {maximum}, got {coerced}")
    if key == "turbo_mode" and coerced not in TURBO_MODES:
        raise ValidationError(f"{namespace}.turbo_mode must be one of {', '.join(TURBO_MODES)}")
    return coerced


class DefaultsManager:
    """Manages default values with precedence: per-call > runtime > config > env > hardcoded"""

    def __init__(self, config_file: Path = CONFIG_FILE, environ: Optional[Dict[str, str]] = None):
        self.config_file = Path(config_file)
        self._environ = os.environ if environ is None else environ
        self._runtime_defaults: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        self._config_defaults = self._load_config_defaults()
        self._env_defaults = self._load_env_defaults()
        self._hardcoded_defaults = {
            "image": {
                "model_2d": "gokaygokay/Flux-2D-Game-Assets-LoRA",
                "model_3d": "gokaygokay/Flux-Game-Assets-LoRA-v2",
                "steps": 50,
            },
            # Numeric 3D values stay unset so each pipeline applies its own defaults.
            "model3d": {
                "remove_background": True,
                "turbo_mode": "Turbo",
            },
        }

    def _load_config_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from config file"""
        defaults: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        if not self.config_file.exists():
            return defaults
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load config file {self.config_file}: {e}")
            return defaults
        for namespace in NAMESPACES:
            for key, value in config.get("defaults", {}).get(namespace, {}).items():
                try:
                    defaults[namespace][key] = coerce_parameter(namespace, key, value)
                except ValidationError as e:
                    logger.warning(f"Ignoring config default {namespace}.{key}: {e}")
        return defaults

    def _load_env_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from environment variables; bad values fail startup"""
        defaults: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        for namespace, variables in ENV_VARIABLES.items():
            for key, variable in variables.items():
                raw = self._environ.get(variable)
                if raw is None or raw.strip() == "":
                    continue
                try:
                    defaults[namespace][key] = coerce_parameter(namespace, key, raw)
                except ValidationError as e:
                    raise ConfigurationError(f"{variable}: {e}")
        return defaults

    def get_default(self, namespace: str, key: str, provided_value: Any = None) -> Any:
        """Get default value with precedence: provided > runtime > config > env > hardcoded"""
        if provided_value is not None:
            return provided_value
        for layer in (self._runtime_defaults, self._config_defaults, self._env_defaults, self._hardcoded_defaults):
            if key in layer.get(namespace, {}):
                return layer[namespace][key]
        return None

    def get_all_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Get all effective defaults (merged from all sources)"""
        result: Dict[str, Dict[str, Any]] = {}
        for namespace in NAMESPACES:
            merged = {key: None for key in PARAMETER_RULES[namespace]}
            for layer in (self._hardcoded_defaults, self._env_defaults, self._config_defaults, self._runtime_defaults):
                merged.update(layer.get(namespace, {}))
            result[namespace] = merged
        return result

    def set_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Set runtime defaults for a namespace. Raises ValidationError on bad input."""
        if namespace not in NAMESPACES:
            raise ValidationError(f"Invalid namespace: {namespace}. Must be one of {', '.join(NAMESPACES)}")
        coerced = {key: coerce_parameter(namespace, key, value) for key, value in defaults.items()}
        runtime = self._runtime_defaults[namespace]
        for key, value in coerced.items():
            # None clears the override so lower layers apply again
            if value is None:
                runtime.pop(key, None)
            else:
                runtime[key] = value
        logger.info(f"Updated runtime {namespace} defaults: {coerced}")
        return coerced

    def persist_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Persist defaults to config file"""
        coerced = {key: coerce_parameter(namespace, key, value) for key, value in defaults.items()}
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        config: Dict[str, Any] = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
            except (json.JSONDecodeError, IOError):
                config = {}

        stored = config.setdefault("defaults", {}).setdefault(namespace, {})
        for key, value in coerced.items():
            if value is None:
                stored.pop(key, None)
            else:
                stored[key] = value
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        self._config_defaults = self._load_config_defaults()
        return coerced
