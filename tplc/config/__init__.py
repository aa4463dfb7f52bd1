from .load import CONFIG_FILE, config_path, load_config
from .model import BuildConfig, FilesAs, StaticConfig

__all__ = ["BuildConfig", "StaticConfig", "FilesAs", "CONFIG_FILE", "config_path", "load_config"]
