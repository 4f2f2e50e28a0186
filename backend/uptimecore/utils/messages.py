"""User-facing messages for probe results and notifications."""
from http import HTTPStatus
from typing import Optional

HTTP_NETWORK_ERROR = "Network error"
HTTP_NOT_JSON = "Response data is not json"
HTTP_JSON_PATH_ERROR = "Failed to parse json data"
HTTP_EMPTY_RESULT = "Result is empty"
HTTP_MATCH_SUCCESS = "Response data match successfully"
HTTP_MATCH_FAIL = "Failed to match response data"

PING_SUCCESS = "Success"
PING_FAIL = "No response"

DOCKER_SUCCESS = "Docker container status fetched successfully"
DOCKER_FAIL = "Failed to fetch Docker container information"
DOCKER_NOT_FOUND = "Docker container not found"

PORT_SUCCESS = "Port connected successfully"
PORT_FAIL = "Failed to connect to port"

DISTRIBUTED_NETWORK_ERROR = "Network Error"

WEBHOOK_UNSUPPORTED_PLATFORM = "Unsupported webhook platform: {platform}"
WEBHOOK_SEND_ERROR = "Error sending {platform} notification"
WEBHOOK_SEND_SUCCESS = "Webhook notification sent successfully"


def status_phrase(code: Optional[int], default: Optional[str] = None) -> Optional[str]:
    """Reason phrase for an HTTP status code, or ``default`` for unknown codes."""
    try:
        return HTTPStatus(code).phrase
    except (ValueError, TypeError):
        return default


def status_string(status: Optional[bool]) -> str:
    if status is True:
        return "up"
    if status is False:
        return "down"
    return "unknown"


def monitor_status(name: str, status: Optional[bool], url: str) -> str:
    return f"{name} is {'up' if status else 'down'} ({url})"
