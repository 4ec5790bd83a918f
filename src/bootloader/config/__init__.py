"""Operator configuration loading."""

from bootloader.config.bootloader_config import (
    CONFIG_FILENAME,
    BinarySettings,
    BootloaderConfig,
    CloudConfigSettings,
    DefaultsSettings,
    ExecutionSettings,
    StoreRetention,
    TeardownSettings,
    default_config_path,
    dump_config,
    dump_default_config,
    load_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "BinarySettings",
    "BootloaderConfig",
    "CloudConfigSettings",
    "DefaultsSettings",
    "ExecutionSettings",
    "StoreRetention",
    "TeardownSettings",
    "default_config_path",
    "dump_config",
    "dump_default_config",
    "load_config",
]
