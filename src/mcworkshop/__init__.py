"""
mcworkshop - Multi-cloud workshop topology provisioning
"""

__version__ = "0.3.0"

from .core import Workshop
from .errors import DeploymentError

__all__ = ["Workshop", "DeploymentError"]
