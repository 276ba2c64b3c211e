"""
ConfigManager: dot-notation access to game balance configuration (2025).

Purpose
-------
- Provide hierarchical, dot-notation access to tunable balance values.
- Back configuration with YAML defaults from the project ``config/`` directory.
- Allow in-process overrides for experiments and tests without touching YAML.

Responsibilities
----------------
- Load and deep-merge every ``*.yaml``/``*.yml`` file under ``config/``.
- Serve reads from an in-memory cache, overrides first, then YAML defaults.
- Track read metrics (hits, misses, fallbacks) for health snapshots.

Non-Responsibilities
--------------------
- Environment/infra settings (handled by ``Config``)
- Validation of business rules (services validate the values they read)
- Persistence of overrides (they live for the process lifetime)

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides are layered on top.
- Every service read supplies a code default so a missing file never changes
  game rules.
- Lazy bootstrap: the first ``get()`` before ``initialize()`` loads YAML.

Dependencies
------------
- PyYAML (``yaml.safe_load``)
- ``hunterfit.core.config.config.Config`` for the config directory
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml

from hunterfit.core.config.config import Config
from hunterfit.core.logging.logger import get_logger

logger = get_logger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


@dataclass(slots=True)
class ConfigMetrics:
    gets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    override_hits: int = 0
    yaml_files_loaded: int = 0


_MISSING = object()


class ConfigManager:
    """
    Balance configuration with YAML defaults and process-local overrides.

    Examples
    --------
    >>> ConfigManager.get("leveling.xp_base", 100)
    100
    >>> ConfigManager.override({"quests": {"daily_count": 5}})
    >>> ConfigManager.get("quests.daily_count")
    5
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _metrics: ConfigMetrics = ConfigMetrics()

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """
        Load all YAML config files from ``config_dir`` into ``_defaults``.

        Files are merged in sorted path order so later files win on conflicts.
        A malformed file is logged and skipped; the rest still load.
        """
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        cls._metrics.yaml_files_loaded = loaded_count
        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults.keys()),
            },
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load YAML defaults. Idempotent unless a different directory is given."""
        target = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)
        if cls._initialized and cls._config_dir == target:
            return

        cls._defaults = {}
        cls._config_dir = target
        cls._load_yaml_configs(target)
        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and loaded defaults. Next read reloads YAML."""
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        cls._config_dir = None
        cls._metrics = ConfigMetrics()

    @classmethod
    def override(cls, values: Mapping[str, Any]) -> None:
        """Layer nested ``values`` over the YAML defaults."""
        cls._deep_merge_dict(cls._overrides, values)
        logger.info(
            "Configuration overrides applied",
            extra={"override_keys": sorted(values.keys())},
        )

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _traverse(tree: Mapping[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. ``"quests.daily_count"``).
        default:
            Value returned when the key is absent from overrides and defaults.
        """
        if not cls._initialized:
            cls.initialize()

        cls._metrics.gets += 1

        value = cls._traverse(cls._overrides, key)
        if value is not _MISSING:
            cls._metrics.override_hits += 1
            return value

        value = cls._traverse(cls._defaults, key)
        if value is _MISSING or value is None:
            cls._metrics.cache_misses += 1
            return default

        cls._metrics.cache_hits += 1
        return value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return all top-level configuration keys."""
        if not cls._initialized:
            cls.initialize()
        return sorted(set(cls._defaults) | set(cls._overrides))

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "config_dir": str(cls._config_dir) if cls._config_dir else None,
            "override_count": len(cls._overrides),
            **asdict(cls._metrics),
        }
