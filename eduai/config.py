"""
Configuration loading for EduAI.

Config lives in ``config.yaml`` with secrets and machine-specific
overrides in ``.env`` / the environment.  Missing keys fall back to
``DEFAULT_CONFIG`` so a fresh checkout runs without any file at all.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from eduai.recommendations import KEEP_HIGHEST, KEEP_LAST

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "paths": {
        "database_file": "eduai_offline.db",
    },
    "api": {
        "base_url": "http://localhost:8000",
        "timeout_seconds": 10,
    },
    "cache": {
        "version": "eduai-cache-v1",
        "previous_versions": [],
        "static_assets": [
            "/",
            "/index.html",
            "/manifest.json",
            "/icons/icon-192x192.png",
            "/icons/icon-512x512.png",
        ],
    },
    "sync": {
        "max_attempts": 5,
    },
    "recommendations": {
        "limit": 5,
        "keep": "highest",
    },
    "logging": {
        "level": "INFO",
    },
}


@dataclass(frozen=True)
class CacheSettings:
    """Explicit cache versioning: which namespace is live and which are stale."""

    version: str
    previous_versions: Tuple[str, ...] = ()
    static_assets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncSettings:
    api_base_url: str
    max_attempts: int = 5
    timeout_seconds: float = 10.0
    tag: str = "sync-quiz-results"


@dataclass
class RecommendationSettings:
    limit: int = 5
    keep: str = "highest"


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``overrides`` into a copy of ``base``, recursing into dicts."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides in place and return the config."""
    if os.environ.get("DATABASE_PATH"):
        config.setdefault("paths", {})["database_file"] = os.environ["DATABASE_PATH"]
    if os.environ.get("EDUAI_API_URL"):
        config.setdefault("api", {})["base_url"] = os.environ["EDUAI_API_URL"]
    if os.environ.get("EDUAI_CACHE_VERSION"):
        config.setdefault("cache", {})["version"] = os.environ["EDUAI_CACHE_VERSION"]
    if os.environ.get("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = os.environ["LOG_LEVEL"]
    return config


def load_config(config_path: str = "config.yaml", env_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML, merged over the defaults.

    Args:
        config_path: Path to the YAML config file.  A missing file is not
            an error; defaults are used.
        env_file: Optional .env path passed to python-dotenv.

    Returns:
        Config dict with every default section present.
    """
    load_dotenv(env_file)

    file_config: Dict[str, Any] = {}
    try:
        with open(config_path, encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info("Config file %s not found, using defaults", config_path)

    config = _deep_merge(DEFAULT_CONFIG, file_config)
    return apply_env_overrides(config)


def cache_settings(config: Dict[str, Any]) -> CacheSettings:
    cache_cfg = config.get("cache", {})
    return CacheSettings(
        version=cache_cfg.get("version", DEFAULT_CONFIG["cache"]["version"]),
        previous_versions=tuple(cache_cfg.get("previous_versions") or ()),
        static_assets=tuple(cache_cfg.get("static_assets") or ()),
    )


def sync_settings(config: Dict[str, Any]) -> SyncSettings:
    api_cfg = config.get("api", {})
    sync_cfg = config.get("sync", {})
    return SyncSettings(
        api_base_url=api_cfg.get("base_url", DEFAULT_CONFIG["api"]["base_url"]),
        max_attempts=int(sync_cfg.get("max_attempts", 5)),
        timeout_seconds=float(api_cfg.get("timeout_seconds", 10)),
    )


def recommendation_settings(config: Dict[str, Any]) -> RecommendationSettings:
    """Typed recommendation settings; raises ValueError on an unknown ``keep`` policy."""
    rec_cfg = config.get("recommendations", {})
    keep = rec_cfg.get("keep", KEEP_HIGHEST)
    if keep not in (KEEP_HIGHEST, KEEP_LAST):
        raise ValueError(
            f"recommendations.keep must be {KEEP_HIGHEST!r} or {KEEP_LAST!r}, got {keep!r}"
        )
    return RecommendationSettings(limit=int(rec_cfg.get("limit", 5)), keep=keep)


def configure_logging(config: Dict[str, Any]) -> None:
    """Set the root log level and format from the ``logging`` section."""
    level_name = str(config.get("logging", {}).get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
