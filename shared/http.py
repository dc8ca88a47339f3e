"""
Request parsing helpers shared by the services.
"""

import json
from typing import Any, Dict

from fastapi import Request

from shared.errors import ValidationError


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body", "Request body must be a JSON object")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body", "Request body must be a JSON object")
    return body
