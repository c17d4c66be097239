from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict


_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class RequestError(ValueError):
    """Raised when an API Gateway event has no usable JSON body."""


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: Dict[str, Any] | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": {**_CORS_HEADERS, "Content-Type": "application/json"},
            "body": json.dumps(self.body or {}),
        }


class HttpRequestParser:
    """Extracts the JSON payload from API Gateway proxy events."""

    def parse(self, event: Dict[str, Any]) -> Dict[str, Any]:
        if "body" not in event or event["body"] is None:
            raise RequestError("Missing request body")

        body = event["body"]
        if event.get("isBase64Encoded"):  # pragma: no cover - gateway config
            body = base64.b64decode(body).decode("utf-8")

        if isinstance(body, str):
            try:
                body = json.loads(body)
            except json.JSONDecodeError as exc:
                raise RequestError("Body must be valid JSON") from exc

        if isinstance(body, dict):
            return body

        raise RequestError("Body must be a JSON object")


def cors_preflight_response(methods: str = "POST,OPTIONS") -> Dict[str, Any]:
    return {
        "statusCode": 204,
        "headers": {
            **_CORS_HEADERS,
            "Access-Control-Allow-Methods": methods,
        },
        "body": "",
    }


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return HttpResponse(status_code=status_code, body=body).to_payload()


def error_response(status_code: int, error: str, message: str) -> Dict[str, Any]:
    return json_response(status_code, {"error": error, "message": message})
