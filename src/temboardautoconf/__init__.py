"""
temboardautoconf - Set up a temboard-agent for a running Postgres cluster
"""

__version__ = "0.1.0"

from .core import AutoConfigurator
from .errors import AutoConfigureError

__all__ = ["AutoConfigurator", "AutoConfigureError"]
