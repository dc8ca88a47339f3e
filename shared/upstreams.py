"""
Upstream API identifiers and the response shape relayed back to callers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx


class UpstreamKind(str, Enum):
    """Third-party APIs the gateway forwards to."""

    GEMINI = "gemini"
    KAKAO_LOCAL = "kakao_local"
    WEATHER = "weather"


# Operation names become part of the Gemini URL, so only these are forwarded.
GEMINI_OPERATIONS = frozenset({
    "generateContent",
    "generateReviews",
    "validateImage",
    "buildPersonalizedRecommendationPrompt",
    "buildGenericRecommendationPrompt",
})


def is_allowed_operation(operation: Any) -> bool:
    """Whether ``operation`` may be forwarded to the generative-AI upstream."""
    return isinstance(operation, str) and operation in GEMINI_OPERATIONS


@dataclass(frozen=True)
class UpstreamResponse:
    """Status and decoded body of an upstream answer."""

    status_code: int
    body: Any

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "UpstreamResponse":
        try:
            body = response.json()
        except ValueError:
            body = response.text
        return cls(status_code=response.status_code, body=body)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
