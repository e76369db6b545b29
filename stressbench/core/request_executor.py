"""
Request Executor

Issues one HTTP request for a ``RequestSpec`` and folds every outcome
(HTTP error, transport failure, cancellation, validation verdict) into a
``RequestResult``. Nothing raised by the transport escapes ``execute``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from stressbench.config import Settings, settings as default_settings
from stressbench.core.auth import auth_headers, substitute_tokens
from stressbench.core.cancellation import CancelToken
from stressbench.core.error_handling import RequestCancelled, describe_transport_error
from stressbench.core.validation import ValidationEngine, evaluate_legacy_test
from stressbench.models import (
    AuthContext,
    HttpMethod,
    RequestResult,
    RequestSpec,
    RequestValidationResult,
)

logger = logging.getLogger(__name__)

LEGACY_TEST_FAILED = "Test expression failed"


@dataclass
class ExecutionOutcome:
    """A request result plus the response detail single-request runs show."""

    result: RequestResult
    response_body: Any = None
    response_headers: dict[str, str] = field(default_factory=dict)
    validation: Optional[RequestValidationResult] = None


def _query_params(payload: Any) -> Optional[dict[str, Any]]:
    if not isinstance(payload, dict) or not payload:
        return None
    params: dict[str, Any] = {}
    for key, value in payload.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            params[str(key)] = value
        else:
            params[str(key)] = json.dumps(value, separators=(",", ":"))
    return params


def _decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type.lower():
        try:
            return response.json()
        except ValueError:
            logger.debug("Response declared JSON but did not parse; using text")
    return response.text


class RequestExecutor:
    """Executes single requests over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        engine: Optional[ValidationEngine] = None,
        settings: Settings = default_settings,
    ) -> None:
        self._client = client
        self._engine = engine or ValidationEngine()
        self._settings = settings

    async def execute(
        self,
        spec: RequestSpec,
        auth: AuthContext,
        cancel_token: Optional[CancelToken] = None,
    ) -> RequestResult:
        outcome = await self.execute_detailed(spec, auth, cancel_token)
        return outcome.result

    async def execute_detailed(
        self,
        spec: RequestSpec,
        auth: AuthContext,
        cancel_token: Optional[CancelToken] = None,
    ) -> ExecutionOutcome:
        """
        Execute one request and keep the decoded response for inspection.

        Args:
            spec: Request template
            auth: Auth context used for headers and token substitution
            cancel_token: Aborts the in-flight request when cancelled

        Returns:
            Outcome with the result and, for 2xx responses, the decoded body,
            headers and validation detail
        """
        if cancel_token is not None and cancel_token.cancelled:
            return ExecutionOutcome(result=self._failure(spec, 0.0, RequestCancelled()))

        headers = httpx.Headers(auth_headers(auth, self._settings))
        headers.update(spec.headers)

        payload = substitute_tokens(spec.input_params, auth)
        request_kwargs: dict[str, Any] = {"headers": headers}
        if spec.method == HttpMethod.GET:
            params = _query_params(payload)
            if params:
                request_kwargs["params"] = params
        elif payload is not None:
            request_kwargs["json"] = payload

        started = time.perf_counter()
        try:
            response = await self._send(spec, request_kwargs, cancel_token)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.debug("%s %s failed: %s", spec.method, spec.path, e)
            return ExecutionOutcome(result=self._failure(spec, duration_ms, e))
        duration_ms = (time.perf_counter() - started) * 1000

        size = len(response.content)
        status = response.status_code
        logger.debug(
            "%s %s -> %d in %.1fms (%d bytes)",
            spec.method,
            spec.path,
            status,
            duration_ms,
            size,
        )

        if not response.is_success:
            return ExecutionOutcome(
                result=RequestResult(
                    config_name=spec.name,
                    duration_ms=duration_ms,
                    success=False,
                    status_code=status,
                    error=f"HTTP {status}",
                    response_size_bytes=size,
                ),
                response_headers=dict(response.headers),
            )

        body = _decode_body(response)
        response_headers = dict(response.headers)
        validation: Optional[RequestValidationResult] = None
        error: Optional[str] = None

        if spec.has_enabled_rules:
            validation = self._engine.validate_response(
                body, status, response_headers, duration_ms, size, spec.validation_rules
            )
            success = validation.passed
            if not success:
                failed = ", ".join(r.rule_name for r in validation.failed_results)
                error = f"Validation failed: {failed}"
        else:
            success = evaluate_legacy_test(spec.legacy_test, body)
            if not success:
                error = LEGACY_TEST_FAILED

        return ExecutionOutcome(
            result=RequestResult(
                config_name=spec.name,
                duration_ms=duration_ms,
                success=success,
                status_code=status,
                error=error,
                response_size_bytes=size,
            ),
            response_body=body,
            response_headers=response_headers,
            validation=validation,
        )

    async def _send(
        self,
        spec: RequestSpec,
        request_kwargs: dict[str, Any],
        cancel_token: Optional[CancelToken],
    ) -> httpx.Response:
        request = self._client.request(spec.method, spec.path, **request_kwargs)
        if cancel_token is None:
            return await request

        send_task = asyncio.ensure_future(request)
        cancel_task = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()

        if send_task in done:
            return send_task.result()

        # Let the aborted request unwind before reporting it.
        await asyncio.gather(send_task, return_exceptions=True)
        raise RequestCancelled()

    @staticmethod
    def _failure(
        spec: RequestSpec, duration_ms: float, exc: BaseException
    ) -> RequestResult:
        return RequestResult(
            config_name=spec.name,
            duration_ms=duration_ms,
            success=False,
            error=describe_transport_error(exc),
        )
