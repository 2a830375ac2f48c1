from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

_ALLOWED_ENVS = {"local", "production", "aws"}


class ConfigValidationError(ValueError):
    """Raised when configuration values are invalid."""


@dataclass
class Config:
    # basic app environment
    app_env: Optional[str] = None

    # paths / app settings
    repo_root: Optional[Path] = None
    data_root: Optional[Path] = None
    portfolio_store_uri: Optional[str] = None
    uvicorn_port: Optional[int] = None
    rate_limit_per_minute: int = 60
    log_config: Optional[str] = None
    log_level: str = "INFO"
    cors_origins: Optional[List[str]] = None

    # valuation
    reporting_currency: str = "GBP"
    default_fx_fee_percent: float = 0.0
    weekly_lookback_days: int = 7

    # scraping
    offline_mode: Optional[bool] = None
    ft_base_url: str = "https://markets.ft.com/data"
    ft_user_agent: Optional[str] = None
    fetch_timeout: int = 10


def _project_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.yaml"


def _env_flag(name: str) -> Optional[bool]:
    val = os.getenv(name)
    if val is None:
        return None
    return val.lower() in {"1", "true", "yes"}


def _flatten_dict(src: Dict[str, Any], dst: Dict[str, Any]) -> None:
    """Flatten one level of ``src`` into ``dst`` while preserving nested maps."""
    for key, value in src.items():
        if isinstance(value, dict) and key != "cors":
            for sub_key, sub_val in value.items():
                dst[sub_key] = sub_val
        else:
            dst[key] = value


def _parse_float(name: str, val: Any, default: float) -> float:
    if val is None or val == "":
        return default
    try:
        return float(val)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"{name} must be a number; got {val!r}") from exc


def validate_fee(fee: float) -> float:
    """Ensure an FX fee percentage lies within ``[0, 100]``."""
    if not 0 <= fee <= 100:
        raise ConfigValidationError(f"default_fx_fee_percent must be between 0 and 100; got {fee}")
    return fee


def validate_currency(code: Any) -> str:
    """Return ``code`` upper-cased when it looks like an ISO currency code."""
    if not isinstance(code, str) or len(code.strip()) != 3 or not code.strip().isalpha():
        raise ConfigValidationError(f"reporting_currency must be a 3-letter code; got {code!r}")
    return code.strip().upper()


def _load_config() -> Config:
    """Load configuration from config.yaml with optional env overrides."""
    path = _project_config_path()
    data: Dict[str, Any] = {}

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
                if isinstance(file_data, dict):
                    _flatten_dict(file_data, data)
        except yaml.YAMLError as exc:
            logger.exception("Failed to parse config file %s", path)
            raise ConfigValidationError(f"Error parsing config file '{path}': {exc}") from exc
        except OSError as exc:
            logger.exception("Failed to read config file %s", path)
            raise ConfigValidationError(f"Error reading config file '{path}': {exc}") from exc

    base_dir = path.parent

    app_env_env = os.getenv("APP_ENV")
    if app_env_env:
        if app_env_env not in _ALLOWED_ENVS:
            raise ConfigValidationError(f"Unexpected APP_ENV '{app_env_env}'")
        data["app_env"] = app_env_env

    offline_env = _env_flag("OFFLINE_MODE")
    if offline_env is not None:
        data["offline_mode"] = offline_env

    repo_root_raw = data.get("repo_root")
    repo_root = (base_dir / repo_root_raw).resolve() if repo_root_raw else base_dir

    data_root_raw = data.get("data_root") or "data"
    env_data_root = os.getenv("DATA_ROOT")
    if env_data_root:
        data_root_raw = env_data_root
    data_root_path = Path(data_root_raw)
    data_root = (data_root_path if data_root_path.is_absolute() else (repo_root / data_root_path)).resolve()

    store_uri = os.getenv("PORTFOLIO_STORE_URI") or data.get("portfolio_store_uri")
    if not store_uri:
        store_uri = f"file://{data_root / 'portfolio.json'}"

    fee = validate_fee(
        _parse_float(
            "default_fx_fee_percent",
            os.getenv("FX_FEE_PERCENT_DEFAULT", data.get("default_fx_fee_percent")),
            0.0,
        )
    )

    cors_raw = data.get("cors")
    cors_origins = None
    if isinstance(cors_raw, dict):
        env = data.get("app_env")
        if env:
            cors_origins = cors_raw.get(env) or cors_raw.get("default")
        else:
            cors_origins = cors_raw.get("default")

    cfg = Config(
        app_env=data.get("app_env"),
        repo_root=repo_root,
        data_root=data_root,
        portfolio_store_uri=store_uri,
        uvicorn_port=data.get("uvicorn_port"),
        rate_limit_per_minute=data.get("rate_limit_per_minute", 60),
        log_config=data.get("log_config"),
        log_level=str(data.get("log_level") or "INFO"),
        cors_origins=cors_origins,
        reporting_currency=validate_currency(data.get("reporting_currency", "GBP")),
        default_fx_fee_percent=fee,
        weekly_lookback_days=int(data.get("weekly_lookback_days", 7)),
        offline_mode=data.get("offline_mode"),
        ft_base_url=data.get("ft_base_url") or "https://markets.ft.com/data",
        ft_user_agent=data.get("ft_user_agent"),
        fetch_timeout=int(data.get("fetch_timeout", 10)),
    )

    return cfg


@lru_cache()
def load_config() -> Config:
    """Load configuration and cache the result."""
    return _load_config()


settings = load_config()
config = settings


def reload_config() -> Config:
    """Reload configuration and update module-level ``config``."""
    global config, settings
    load_config.cache_clear()
    new_config = load_config()
    config = settings = new_config
    return new_config


def __getattr__(name: str) -> Any:
    try:
        return getattr(load_config(), name)
    except AttributeError as exc:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from exc
