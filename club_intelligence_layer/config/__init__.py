"""Configuration subpackage for the Club Intelligence Layer.

Expose the pseudonym tables, metric catalogue and settings.
"""

from .metrics import (  # noqa: F401
    METRIC_CONFIGS,
    STAT_TYPE_TO_METRIC,
    MetricConfig,
    get_metric_config,
)
from .pseudonyms import load_pseudonym_tables  # noqa: F401
from .settings import Settings, load_settings  # noqa: F401

__all__ = [
    "METRIC_CONFIGS",
    "STAT_TYPE_TO_METRIC",
    "MetricConfig",
    "get_metric_config",
    "load_pseudonym_tables",
    "Settings",
    "load_settings",
]
