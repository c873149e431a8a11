"""Helpers shared by the httpx-based provider adapters."""

from __future__ import annotations

from typing import Any

import httpx


def provider_error_message(response: httpx.Response) -> str:
    """Extract the provider's error text from a non-success response."""
    try:
        payload: Any = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return f"provider responded with HTTP {response.status_code}"


def describe_transport_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "request timed out"
    return str(exc) or type(exc).__name__
