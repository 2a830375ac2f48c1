from pathlib import Path

import pytest

import portfolio_tracker.config as config_module
from portfolio_tracker.config import ConfigValidationError, reload_config, validate_currency, validate_fee


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    """Keep reloads in this module from leaking into other tests."""
    monkeypatch.setattr(config_module, "config", config_module.config)
    monkeypatch.setattr(config_module, "settings", config_module.settings)
    yield
    config_module.load_config.cache_clear()


def test_config_alias_settings():
    assert config_module.settings is config_module.config


def test_defaults_from_yaml(monkeypatch):
    monkeypatch.delenv("PORTFOLIO_STORE_URI", raising=False)
    monkeypatch.delenv("FX_FEE_PERCENT_DEFAULT", raising=False)
    cfg = reload_config()
    assert cfg.reporting_currency == "GBP"
    assert cfg.weekly_lookback_days == 7
    assert cfg.rate_limit_per_minute == 120
    assert cfg.log_config == "logging.ini"
    assert cfg.default_fx_fee_percent == 0
    assert "http://localhost:3000" in cfg.cors_origins


def test_store_uri_defaults_under_data_root(monkeypatch, tmp_path):
    monkeypatch.delenv("PORTFOLIO_STORE_URI", raising=False)
    monkeypatch.setenv("DATA_ROOT", str(tmp_path))
    cfg = reload_config()
    assert cfg.data_root == tmp_path.resolve()
    assert cfg.portfolio_store_uri == f"file://{tmp_path.resolve() / 'portfolio.json'}"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORTFOLIO_STORE_URI", "s3://bucket/book.json")
    monkeypatch.setenv("OFFLINE_MODE", "true")
    monkeypatch.setenv("FX_FEE_PERCENT_DEFAULT", "1.25")
    monkeypatch.setenv("APP_ENV", "production")
    cfg = reload_config()
    assert cfg.portfolio_store_uri == "s3://bucket/book.json"
    assert cfg.offline_mode is True
    assert cfg.default_fx_fee_percent == 1.25
    assert cfg.app_env == "production"


def test_reload_updates_module_attribute(monkeypatch):
    monkeypatch.setenv("OFFLINE_MODE", "0")
    cfg = reload_config()
    assert config_module.config is cfg
    assert cfg.offline_mode is False


@pytest.mark.parametrize(
    "name,value",
    [("APP_ENV", "staging"), ("FX_FEE_PERCENT_DEFAULT", "abc"), ("FX_FEE_PERCENT_DEFAULT", "150")],
)
def test_invalid_env_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigValidationError):
        reload_config()


def test_invalid_yaml(monkeypatch, tmp_path):
    bad = tmp_path / "config.yaml"
    bad.write_text("app: [unclosed")
    monkeypatch.setattr(config_module, "_project_config_path", lambda: bad)
    with pytest.raises(ConfigValidationError):
        reload_config()


def test_missing_yaml_uses_dataclass_defaults(monkeypatch, tmp_path):
    monkeypatch.delenv("PORTFOLIO_STORE_URI", raising=False)
    monkeypatch.delenv("DATA_ROOT", raising=False)
    monkeypatch.setattr(config_module, "_project_config_path", lambda: tmp_path / "missing.yaml")
    cfg = reload_config()
    assert cfg.repo_root == Path(tmp_path)
    assert cfg.data_root == (tmp_path / "data").resolve()
    assert cfg.rate_limit_per_minute == 60


def test_validators():
    assert validate_currency(" usd ") == "USD"
    with pytest.raises(ConfigValidationError):
        validate_currency("US")
    assert validate_fee(0.5) == 0.5
    with pytest.raises(ConfigValidationError):
        validate_fee(-1)
