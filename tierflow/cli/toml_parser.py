# tierflow/cli/toml_parser.py
"""Parser for stack.toml project files"""

from pathlib import Path
from typing import Dict, Any

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python

from ..errors import StackConfigError

TIER_SECTIONS = ("backend", "frontend", "cache")


def parse_stack_toml(toml_path: Path) -> Dict[str, Any]:
    """
    Parse stack.toml.

    Expected format:
    ```toml
    [stack]
    name = "falcon-ariane"
    namespace = "default"

    [backend]
    port = 4000

    [backend.config]
    REDIS_HOST = "redis"
    REDIS_PORT = "6399"

    [cache]
    port = 6399
    storage_class = "standard"
    ```

    Returns empty sections if the file doesn't exist, so every value falls
    back to the built-in stack.
    """
    default_config = {"stack": {}, "backend": {}, "frontend": {}, "cache": {}}

    if not toml_path.exists():
        return default_config

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise StackConfigError(f"{toml_path}: {e}") from e

    unknown = set(data) - set(default_config)
    if unknown:
        raise StackConfigError(f"{toml_path}: unknown section(s) {sorted(unknown)}")

    default_config.update(data)
    return default_config


def get_tier_config(config: Dict[str, Any], kind: str) -> Dict[str, Any]:
    """Get one tier's section, with its [<tier>.config] table split out as ConfigMap data"""
    section = dict(config.get(kind, {}))
    raw_env = section.pop("config", {})
    if not isinstance(raw_env, dict):
        raise StackConfigError(f"[{kind}.config] must be a table")

    env = {}
    for key, value in raw_env.items():
        # ConfigMap data is string-only
        if isinstance(value, (dict, list)):
            raise StackConfigError(f"[{kind}.config] {key} must be a scalar, got {type(value).__name__}")
        if isinstance(value, bool):
            value = "true" if value else "false"
        env[key] = str(value)

    if raw_env or "config" in config.get(kind, {}):
        section["config"] = env
    return section
