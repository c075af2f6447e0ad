"""API Gateway proxy responses with CORS headers."""

import json
from typing import Any, Dict

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
}


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(CORS_HEADERS),
        "body": json.dumps(body, ensure_ascii=False),
    }


def success(body: Any) -> Dict[str, Any]:
    return _response(200, body)


def created(body: Any) -> Dict[str, Any]:
    return _response(201, body)


def bad_request(message: str) -> Dict[str, Any]:
    return _response(400, {"error": message})


def unauthorized(message: str = "Unauthorized") -> Dict[str, Any]:
    return _response(401, {"error": message})


def forbidden_with_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """403 carrying a structured body, used for quota denials."""
    return _response(403, data)


def not_found(message: str = "Not found") -> Dict[str, Any]:
    return _response(404, {"error": message})


def conflict(message: str) -> Dict[str, Any]:
    return _response(409, {"error": message})


def server_error(message: str = "Internal server error") -> Dict[str, Any]:
    return _response(500, {"error": message})
