"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env``               -- local developer overrides
  3. Environment vars       -- deployment-time values

``_deep_merge`` merges nested dicts recursively, so a YAML section can
keep keys the environment does not mention.
"""

from pathlib import Path

import yaml

from ragdesk.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge the environment-based Settings on top.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built Settings; a fresh instance is created when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
            "forced_provider": settings.llm_provider,
        },
        "storage": {
            "database_path": settings.database_path,
            "document_dir": settings.document_dir,
        },
        "search": {
            "lexical_weight": settings.search_lexical_weight,
            "vector_weight": settings.search_vector_weight,
            "similarity_threshold": settings.search_similarity_threshold,
            "max_limit": settings.search_max_limit,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
