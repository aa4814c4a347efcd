"""Errors reported by an Elasticsearch instance."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any, Iterable


class QueryTimeoutError(Exception):
    """The search query timed out."""

    def __init__(self, message: str = "query timeout") -> None:
        super().__init__(message)


class ElasticAPIError(Exception):
    """An Elasticsearch API call answered with an error."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


def dump_root_causes(root_causes: Iterable[dict[str, Any]]) -> str:
    """Render root causes as '; type1: reason1; type2: reason2'."""
    return "".join(f"; {c.get('type')}: {c.get('reason')}" for c in root_causes)


def check_response(response: Any) -> None:
    """Raise ElasticAPIError if the response status is above 299."""
    code = response.status_code
    if code <= 299:
        return
    try:
        phrase = HTTPStatus(code).phrase
    except ValueError:
        phrase = ""
    try:
        error = json.loads(response.text)["error"]
        message = f"[{code} {phrase}] {error['type']}: {error['reason']}"
    except (ValueError, KeyError, TypeError) as exc:
        raise ElasticAPIError(f"[{code} {phrase}] invalid error response: {exc}", code) from exc
    if error.get("root_cause") is not None:
        message += dump_root_causes(error["root_cause"])
    raise ElasticAPIError(message, code)