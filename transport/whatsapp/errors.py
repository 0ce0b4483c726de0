"""
Gateway error envelope.

Routes raise ApiError; the application-level handler renders it as
``{"success": false, "error": "<message>"}`` with the carried status code.
"""

import json
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Request failed with a client-visible error message."""

    def __init__(self, status_code: int, error: str):
        self.status_code = status_code
        self.error = error
        super().__init__(error)


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.error)


def method_not_allowed() -> JSONResponse:
    return error_response(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        "Method not allowed. Use POST instead.",
    )


async def read_json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object or raise ApiError(400)."""
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid JSON format in request body")

    if not isinstance(body, dict):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid JSON format in request body")
    return body
