"""
Adapters package for the pinned generative-AI unit.
"""

from .gemini_client import GeminiClient

__all__ = [
    "GeminiClient",
]
