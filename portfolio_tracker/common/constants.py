from portfolio_tracker.config import config

REPORTING_CURRENCY = (config.reporting_currency or "GBP").upper()

DEFAULT_PORTFOLIO_NAME = "Main"

# pence sterling quotes are rescaled to pounds
MINOR_UNIT_CURRENCIES = {"GBX": ("GBP", 100.0), "GBp": ("GBP", 100.0)}

WEEKLY_LOOKBACK_DAYS = config.weekly_lookback_days or 7

VALUE_MODE = "value"

PERCENT_MODE = "percent"

ALL_PORTFOLIOS = "*"
