"""Project discovery via the Cloud Code ``loadCodeAssist`` endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from usage_google.errors import UsageGoogleError
from usage_google.transport import bearer_headers, read_json_safe, send

logger = logging.getLogger(__name__)

LOAD_CODE_ASSIST_URL = "https://cloudcode-pa.googleapis.com/v1internal:loadCodeAssist"
PROJECT_TIMEOUT_S = 15.0

# Used when discovery fails; quota calls then succeed or fail on their own terms.
DEFAULT_PROJECT_ID = "bamboo-precept-lgxtn"

_METADATA = {
    "ideType": "IDE_UNSPECIFIED",
    "platform": "PLATFORM_UNSPECIFIED",
    "pluginType": "GEMINI",
}


def extract_project_id(payload: Any) -> str | None:
    """Pull the project id out of a ``loadCodeAssist`` response."""
    if not isinstance(payload, dict):
        return None
    project_id = payload.get("projectId")
    if isinstance(project_id, str) and project_id.strip():
        return project_id.strip()
    project = payload.get("cloudaicompanionProject")
    if isinstance(project, dict):
        project = project.get("id")
    if isinstance(project, str) and project.strip():
        return project.strip()
    return None


async def resolve_project_id(
    access_token: str,
    known_project_id: str | None = None,
    *,
    client: httpx.AsyncClient,
) -> str:
    """Return ``known_project_id`` or discover one, falling back to a fixed project."""
    if known_project_id and known_project_id.strip():
        return known_project_id
    if not access_token or not access_token.strip():
        raise ValueError("Access token is required and cannot be empty")

    try:
        response = await send(
            client,
            "POST",
            LOAD_CODE_ASSIST_URL,
            timeout=PROJECT_TIMEOUT_S,
            headers=bearer_headers(access_token),
            json={"metadata": _METADATA},
        )
    except UsageGoogleError as exc:
        logger.debug("Project discovery failed (%s); using fallback project", exc)
        return DEFAULT_PROJECT_ID

    if not response.is_success:
        logger.debug(
            "Project discovery returned HTTP %s; using fallback project", response.status_code
        )
        return DEFAULT_PROJECT_ID

    project_id = extract_project_id(read_json_safe(response))
    if project_id is None:
        logger.debug("Project discovery response has no project id; using fallback project")
        return DEFAULT_PROJECT_ID
    return project_id
