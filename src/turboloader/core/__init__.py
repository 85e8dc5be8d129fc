"""
TurboLoader Core - Foundation modules shared by the CLI and the library.

- config: Application configuration management and logging setup
"""

from turboloader.core.config import (
    ExportConfig,
    ImportConfig,
    LoggingConfig,
    StoreConfig,
    TurboLoaderConfig,
    configure_logging,
    get_config,
    load_config,
)

__all__ = [
    "ExportConfig",
    "ImportConfig",
    "LoggingConfig",
    "StoreConfig",
    "TurboLoaderConfig",
    "configure_logging",
    "get_config",
    "load_config",
]
