"""
Configuration layer for HunterFit.

- ``Config``: static infrastructure settings from the environment (.env aware)
- ``hunterfit.core.config.manager.ConfigManager``: dot-notation balance values
  from ``config/*.yaml``. Import it from its module; it depends on the logging
  subsystem, which itself reads ``Config``.
"""

from hunterfit.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
