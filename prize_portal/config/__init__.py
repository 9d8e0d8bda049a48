from .settings import Settings, ConfigurationError, get_settings, get_bool_env

__all__ = ["Settings", "ConfigurationError", "get_settings", "get_bool_env"]
