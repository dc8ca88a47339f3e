"""
Upstream dispatch for authorized requests.

Search and weather calls go straight to the third-party API; generative-AI
calls go through the region pin to a single long-lived unit.
"""

from .dispatcher import ProxyDispatcher
from .region_pin import PinState, SingletonRegionPin, UnitBinding, UnitDirectory

__all__ = [
    "PinState",
    "ProxyDispatcher",
    "SingletonRegionPin",
    "UnitBinding",
    "UnitDirectory",
]
