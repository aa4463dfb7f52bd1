from __future__ import annotations

import logging
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ConfigError, IoError
from .model import BuildConfig

logger = logging.getLogger(__name__)

# Файл конфигурации в корне проекта
CONFIG_FILE = "tplc.yaml"

_yaml = YAML(typ="safe")


def config_path(root: Path) -> Path:
    """Путь к файлу конфигурации проекта tplc.yaml."""
    return root / CONFIG_FILE


def _read_yaml_map(path: Path) -> dict:
    """Читает YAML файл и возвращает словарь."""
    if not path.is_file():
        return {}
    try:
        raw = _yaml.load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise IoError("Cannot read configuration", path) from exc
    except YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"YAML must be a mapping: {path}")
    return raw


def load_config(root: Path, path: Path | None = None) -> BuildConfig:
    """
    Загружает настройки сборки.

    Args:
        root: Корень проекта; относительные пути разрешаются от него
        path: Явный файл конфигурации (иначе root/tplc.yaml, если есть)

    Returns:
        BuildConfig; без файла — значения по умолчанию

    Raises:
        ConfigError: Некорректное содержимое
        IoError: Явно указанный файл не читается
    """
    if path is not None and not path.is_file():
        raise IoError("Configuration file not found", path)
    cfg_file = path or config_path(root)
    if path is not None:
        root = path.parent
    raw = _read_yaml_map(cfg_file)
    if not raw:
        logger.debug("No configuration at %s, using defaults", cfg_file)
        return BuildConfig.default(root)
    logger.debug("Loaded configuration from %s", cfg_file)
    return BuildConfig.from_dict(raw, root)


__all__ = ["CONFIG_FILE", "config_path", "load_config"]
