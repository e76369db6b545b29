"""
Centralized error types and transport-failure classification.

Request-level failures never escape the executor as exceptions; they are
folded into a ``RequestResult.error`` string. The exceptions defined here are
for callers misusing the library (bad load parameters, reusing a run) and for
rule-level failures that the validation engine isolates per rule.
"""

from __future__ import annotations

import asyncio

import httpx

CANCELLED_MESSAGE = "Request cancelled"
UNKNOWN_ERROR = "Unknown error"


class StressBenchError(Exception):
    """Base class for stressbench errors."""


class InvalidLoadParameters(StressBenchError, ValueError):
    """Raised when load-mode parameters are rejected before a run starts."""


class RunStateError(StressBenchError, RuntimeError):
    """Raised on an illegal lifecycle transition (e.g. reusing a generator)."""


class JsonPathError(StressBenchError, ValueError):
    """Raised when a JSON path expression is syntactically malformed."""


class ExpressionError(StressBenchError, ValueError):
    """Raised when a sandboxed expression is rejected or fails to evaluate."""


class RequestCancelled(StressBenchError):
    """Raised inside the executor when a run's cancel token fires mid-request."""


def describe_transport_error(exc: BaseException) -> str:
    """
    Convert a transport-level exception into a user-facing message.

    httpx exception messages are often empty for low-level socket failures,
    so the exception class name is used as a fallback.
    """
    if isinstance(exc, (asyncio.CancelledError, RequestCancelled)):
        return CANCELLED_MESSAGE

    msg = str(exc).strip()

    if isinstance(exc, httpx.TimeoutException):
        return f"Request timed out: {msg}" if msg else "Request timed out"

    if isinstance(exc, httpx.ConnectError):
        return f"Connection failed: {msg}" if msg else "Connection failed"

    if msg:
        return msg
    name = type(exc).__name__
    return name if name and name != "Exception" else UNKNOWN_ERROR
