"""Configuration loading helpers for feed-crawler."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from .models import GlobalConfig, TargetGroupConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
GROUP_CONFIG_SUFFIX = ".yaml"


def slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    groups_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("FEED_CRAWLER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.groups_dir = (self.data_dir / "groups").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.groups_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            global_cfg = GlobalConfig.model_validate(_read_file(path))
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._global_cache = config

    # ------------------------------------------------------------------
    # Group configuration helpers
    # ------------------------------------------------------------------
    def group_path(self, group_name: str) -> Path:
        return self.locator.groups_dir / f"{slugify(group_name)}{GROUP_CONFIG_SUFFIX}"

    def list_group_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.groups_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_groups(self) -> list[TargetGroupConfig]:
        return [self.load_group(path) for path in self.list_group_files()]

    def load_group(self, identifier: str | Path) -> TargetGroupConfig:
        path = identifier if isinstance(identifier, Path) else self.group_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Group configuration not found: {identifier}")
        return TargetGroupConfig.model_validate(_read_file(path))

    def save_group(self, config: TargetGroupConfig) -> Path:
        path = self.group_path(config.name)
        _write_file(path, config.model_dump(mode="json", exclude_none=True))
        return path

    def delete_group(self, group_name: str) -> None:
        path = self.group_path(group_name)
        if path.exists():
            path.unlink()


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_EXTENSIONS", "slugify"]
