"""Portfolio tracker package public interface.

Expose the :mod:`portfolio_tracker.config` module under ``config_module`` and
make it directly available as ``config`` for convenience.
"""

from . import config as config_module

# Re-export the configuration module so ``from portfolio_tracker import config``
# works consistently in both application code and tests.
config = config_module

__all__ = ["config", "config_module"]
