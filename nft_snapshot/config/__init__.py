from .config import Config, ConfigError, setup_logging

__all__ = ['Config', 'ConfigError', 'setup_logging']
