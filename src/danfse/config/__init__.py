# This file makes Python treat the `config` directory as a package.
from .models import RenderSettings, MunicipalitySettings, PayerCitySettings
from .loader import ConfigManager
from .paths import resolve_config_file

__all__ = [
    "RenderSettings",
    "MunicipalitySettings",
    "PayerCitySettings",
    "ConfigManager",
    "resolve_config_file",
]
