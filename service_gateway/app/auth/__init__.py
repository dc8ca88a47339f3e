"""
Token issuance and verification for the gateway.
"""

from .tokens import (
    TokenFailure,
    TokenPair,
    TokenRefreshResponse,
    TokenService,
    TokenVerificationResponse,
)

__all__ = [
    "TokenFailure",
    "TokenPair",
    "TokenRefreshResponse",
    "TokenService",
    "TokenVerificationResponse",
]
