"""
Static route table and bearer-token authorization.
"""

from .router import AuthContext, RequestRouter, Route

__all__ = [
    "AuthContext",
    "RequestRouter",
    "Route",
]
