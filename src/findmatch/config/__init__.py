from .loader import (
    CONFIG_ENV_VAR,
    RoundConfig,
    WindowConfig,
    load_round_config,
    parse_round_config,
    validate_config_dict,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "RoundConfig",
    "WindowConfig",
    "load_round_config",
    "parse_round_config",
    "validate_config_dict",
]
