from .settings import DEFAULT_RISK_FREE_RATE, DEFAULT_SETTINGS, AnalyticsSettings, load_settings
from .environment import EnvReader

__all__ = [
    "AnalyticsSettings",
    "DEFAULT_RISK_FREE_RATE",
    "DEFAULT_SETTINGS",
    "EnvReader",
    "load_settings",
]
