"""
Route handlers for the Gateway Service.
"""

from .handlers import GatewayHandlers

__all__ = [
    "GatewayHandlers",
]
