from .config import (
    DEFAULT_TIMEOUT_MS,
    Config,
    apply_env,
    default_config,
    expand_config_home,
    load_from_file,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "Config",
    "apply_env",
    "default_config",
    "expand_config_home",
    "load_from_file",
]
