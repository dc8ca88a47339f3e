"""
Token issuance and verification for the gateway.

Tokens are HS256 JWTs: three base64url segments (header, payload, signature)
joined by dots. Nothing is stored server-side; a token stays valid until its
``exp`` passes.
"""

import hashlib
import hmac
import time
import uuid
from typing import Any, Callable, Dict, Optional

import jwt
from jwt.algorithms import HMACAlgorithm
from jwt.utils import base64url_encode
from pydantic import BaseModel

from shared.errors import AuthFailureReason, ConfigurationError
from shared.logging import get_logger

TokenFailure = AuthFailureReason

REFRESH_TOKEN_TYPE = "refresh"


class TokenVerificationResponse(BaseModel):
    """Outcome of verifying a token; ``error`` is set when ``valid`` is false."""
    valid: bool
    claims: Optional[Dict[str, Any]] = None
    error: Optional[TokenFailure] = None


class TokenRefreshResponse(BaseModel):
    """Outcome of exchanging a refresh token for a new access token."""
    valid: bool
    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = "Bearer"
    error: Optional[TokenFailure] = None


class TokenPair(BaseModel):
    """Access and refresh tokens issued on device registration."""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenService:
    """Mints and verifies signed, time-bounded device credentials."""

    def __init__(self,
                 secret: str,
                 issuer: str = "reviewai-api",
                 audience: str = "reviewai-app",
                 access_ttl_seconds: int = 3600,
                 refresh_ttl_seconds: int = 7 * 24 * 3600,
                 clock: Callable[[], float] = time.time):
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds
        self.clock = clock
        self.logger = get_logger("gateway.tokens")
        self._algorithm = HMACAlgorithm(HMACAlgorithm.SHA256)

    def _signing_key(self) -> bytes:
        if not self.secret:
            raise ConfigurationError("Token signing secret not configured")
        return self._algorithm.prepare_key(self.secret)

    def _now(self) -> int:
        return int(self.clock())

    def _sign(self, message: str) -> str:
        signature = self._algorithm.sign(message.encode("utf-8"), self._signing_key())
        return base64url_encode(signature).decode("ascii")

    def generate(self, claims: Dict[str, Any], ttl_seconds: int) -> str:
        """Sign ``claims`` with issue/expiry times and the fixed issuer/audience."""
        now = self._now()
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl_seconds,
            "iss": self.issuer,
            "aud": self.audience,
        }
        return jwt.encode(payload, self._signing_key(), algorithm="HS256")

    def verify(self, token: str) -> TokenVerificationResponse:
        """Check format, signature, claims and expiry, in that order.

        The signature segment is compared as text so that any altered character
        fails, including the trailing bits base64 decoding would discard.
        """
        parts = token.split(".")
        if len(parts) != 3:
            return TokenVerificationResponse(valid=False, error=TokenFailure.MALFORMED)

        encoded_header, encoded_payload, signature = parts
        expected = self._sign(f"{encoded_header}.{encoded_payload}")
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            return TokenVerificationResponse(valid=False, error=TokenFailure.INVALID_SIGNATURE)

        # Expiry and issue time are checked against the injected clock below
        options: Dict[str, Any] = {"verify_exp": False, "verify_iat": False}

        try:
            claims = jwt.decode(
                token,
                self._signing_key(),
                algorithms=["HS256"],
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except jwt.InvalidSignatureError:
            return TokenVerificationResponse(valid=False, error=TokenFailure.INVALID_SIGNATURE)
        except jwt.InvalidTokenError as exc:
            self.logger.warning("Token claims rejected", error=str(exc))
            return TokenVerificationResponse(valid=False, error=TokenFailure.MALFORMED)

        exp = claims.get("exp")
        if isinstance(exp, (int, float)) and exp < self._now():
            return TokenVerificationResponse(valid=False, error=TokenFailure.EXPIRED)

        return TokenVerificationResponse(valid=True, claims=claims)

    def refresh(self, refresh_token: str) -> TokenRefreshResponse:
        """Exchange a refresh token for a new access token (no new refresh token)."""
        verification = self.verify(refresh_token)
        if not verification.valid:
            self.logger.warning("Refresh token rejected", reason=verification.error.value)
            return TokenRefreshResponse(valid=False, error=verification.error)

        claims = verification.claims
        if claims.get("type") != REFRESH_TOKEN_TYPE:
            self.logger.warning("Refresh attempted with non-refresh token")
            return TokenRefreshResponse(valid=False, error=TokenFailure.WRONG_TYPE)

        access_token = self.generate(
            {
                "deviceId": claims.get("deviceId"),
                "deviceHash": claims.get("deviceHash"),
                "jti": str(uuid.uuid4()),
            },
            self.access_ttl_seconds,
        )
        return TokenRefreshResponse(
            valid=True,
            access_token=access_token,
            expires_in=self.access_ttl_seconds,
        )

    def issue_pair(self, device_id: str, app_version: str, device_info: Optional[str] = None) -> TokenPair:
        """Issue an access/refresh pair for a registering device."""
        device_hash = self.derive_device_hash(device_id, app_version, device_info)
        access_token = self.generate(
            {
                "deviceId": device_id,
                "appVersion": app_version,
                "deviceHash": device_hash,
                "jti": str(uuid.uuid4()),
            },
            self.access_ttl_seconds,
        )
        refresh_token = self.generate(
            {
                "deviceId": device_id,
                "deviceHash": device_hash,
                "jti": str(uuid.uuid4()),
                "type": REFRESH_TOKEN_TYPE,
            },
            self.refresh_ttl_seconds,
        )
        self.logger.info("Token pair issued", device_id=device_id, app_version=app_version)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_ttl_seconds,
        )

    @staticmethod
    def derive_device_hash(device_id: str, app_version: str, device_info: Optional[str] = None) -> str:
        """SHA-256 fingerprint embedded in tokens; an integrity hint, not a secret."""
        material = f"{device_id}-{app_version}-{device_info or ''}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()
