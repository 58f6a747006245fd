"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, slugify
from .models import (
    ChainOptions,
    FetchConfig,
    GlobalConfig,
    SelectorConfig,
    StorageConfig,
    TargetConfig,
    TargetGroupConfig,
)

__all__ = [
    "ChainOptions",
    "ConfigLocator",
    "ConfigRepository",
    "FetchConfig",
    "GlobalConfig",
    "SelectorConfig",
    "StorageConfig",
    "TargetConfig",
    "TargetGroupConfig",
    "slugify",
]
