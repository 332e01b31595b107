"""Checks a Deepgram API key against the projects endpoint."""

from __future__ import annotations

import logging

import httpx

from errors import AUTH_FAILED, NETWORK_ERROR, NO_CREDENTIAL
from models import CommandResult

logger = logging.getLogger(__name__)

PROJECTS_URL = "https://api.deepgram.com/v1/projects"


async def verify_credential(
    credential: str,
    url: str = PROJECTS_URL,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> CommandResult:
    if not credential:
        return CommandResult.fail(NO_CREDENTIAL)

    headers = {"Authorization": f"Token {credential}", "Content-Type": "application/json"}
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.get(url, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Deepgram key check failed: %s", exc)
        return CommandResult.fail(NETWORK_ERROR, str(exc))
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code == 200:
        return CommandResult(success=True, message="Deepgram API key is valid")
    return CommandResult.fail(AUTH_FAILED, f"Invalid API key (status: {response.status_code})")
