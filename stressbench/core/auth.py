"""
Auth context handling: header construction, token substitution and the
"who am I" identity lookup.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from stressbench.config import Settings, settings as default_settings
from stressbench.core.error_handling import describe_transport_error
from stressbench.models import AuthContext

logger = logging.getLogger(__name__)

TENANT_PLACEHOLDER = "{{tenantId}}"
REGION_PLACEHOLDER = "{{regionId}}"


def auth_headers(
    auth: AuthContext, settings: Settings = default_settings
) -> dict[str, str]:
    """
    Build the ambient request headers for an auth context.

    Args:
        auth: Current auth context
        settings: Settings providing the header layout

    Returns:
        Header mapping with content type and any available tokens
    """
    headers = {"Content-Type": "application/json"}
    if auth.bearer_token:
        headers["Authorization"] = f"{settings.AUTH_SCHEME} {auth.bearer_token}"
    if auth.anti_forgery_token:
        headers[settings.ANTI_FORGERY_HEADER] = auth.anti_forgery_token
    return headers


def _escape_for_json(value: str) -> str:
    # json.dumps yields a quoted JSON string; strip the quotes to splice it
    # into an existing string literal.
    return json.dumps(value)[1:-1]


def substitute_tokens(payload: Any, auth: AuthContext) -> Any:
    """
    Replace ``{{tenantId}}``/``{{regionId}}`` markers inside a payload.

    The payload is serialized to JSON, the markers are replaced textually with
    JSON-escaped values (empty string when the context value is absent) and
    the result is parsed back. Never raises: if the payload cannot be
    serialized or the substituted text is not valid JSON, the original
    payload is returned and a warning is logged.
    """
    if payload is None:
        return None

    try:
        raw = json.dumps(payload)
    except (TypeError, ValueError) as e:
        logger.warning("Payload is not JSON serializable, skipping substitution: %s", e)
        return payload

    if TENANT_PLACEHOLDER not in raw and REGION_PLACEHOLDER not in raw:
        return payload

    substituted = raw.replace(
        TENANT_PLACEHOLDER, _escape_for_json(auth.tenant_id or "")
    ).replace(REGION_PLACEHOLDER, _escape_for_json(auth.region_id or ""))

    try:
        return json.loads(substituted)
    except ValueError as e:
        logger.warning(
            "Token substitution produced invalid JSON, using original: %s", e
        )
        return payload


async def fetch_user_info(
    client: httpx.AsyncClient,
    auth: AuthContext,
    settings: Settings = default_settings,
) -> bool:
    """
    Populate ``tenant_id``/``region_id`` from the current-user endpoint.

    Failures are logged and leave the fields untouched; substitution then
    falls back to empty strings rather than failing the run.

    Returns:
        True if the lookup succeeded and the context was updated
    """
    try:
        response = await client.get(
            settings.USER_INFO_PATH, headers=auth_headers(auth, settings)
        )
    except httpx.HTTPError as e:
        logger.error("Failed to fetch user info: %s", describe_transport_error(e))
        return False

    if not response.is_success:
        logger.warning("User info lookup returned HTTP %d", response.status_code)
        return False

    try:
        info = response.json()
    except ValueError as e:
        logger.error("User info response is not JSON: %s", e)
        return False

    if not isinstance(info, dict):
        logger.error("User info response is not an object")
        return False

    tenant_id = info.get("tenantId")
    region_id = info.get("regionId")
    auth.tenant_id = str(tenant_id) if tenant_id is not None else None
    auth.region_id = str(region_id) if region_id is not None else None
    logger.info(
        "Resolved identity (tenant=%s, region=%s)", auth.tenant_id, auth.region_id
    )
    return True
