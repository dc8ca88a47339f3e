"""
Adapters package for the Gateway Service.

Contains httpx client wrappers for the third-party APIs and the pinned
generative-AI unit. These adapters encapsulate:

- Base URLs and request shapes
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls. They
never retry; retrying is left to the caller.
"""

from .kakao_local_client import KakaoLocalClient
from .pinned_unit_client import PinnedUnitClient
from .weather_client import WeatherClient

__all__ = [
    "KakaoLocalClient",
    "PinnedUnitClient",
    "WeatherClient",
]
