"""crates.io API metadata used to fill package descriptions."""
from __future__ import annotations

import logging
from typing import Dict, Optional
from urllib.parse import quote

from constants import Constants
from common.http_client import get_json
from common.logging_utils import extra_context, safe_url

logger = logging.getLogger(__name__)


def fetch_crate_metadata(name: str, version: str) -> Dict[str, Optional[str]]:
    """Fetch description, home page and license of a crate version.

    Failures are logged and yield empty fields; metadata is never required
    for emitting a package definition.

    Returns:
        Dict with keys home_page, synopsis, description, license.
    """
    metadata: Dict[str, Optional[str]] = {
        "home_page": None,
        "synopsis": None,
        "description": None,
        "license": None,
    }
    crate_url = f"{Constants.REGISTRY_URL_API}{quote(name, safe='')}"
    status_code, _, data = get_json(crate_url)
    if status_code != 200 or not isinstance(data, dict):
        logger.warning(
            "Could not fetch metadata for crate %s (status %s)",
            name,
            status_code,
            extra=extra_context(event="http_response", outcome="metadata_missing", target=safe_url(crate_url)),
        )
        return metadata

    crate = data.get("crate") or {}
    description = (crate.get("description") or "").strip() or None
    metadata["description"] = description
    if description:
        metadata["synopsis"] = description.splitlines()[0].rstrip(".")
    metadata["home_page"] = crate.get("homepage") or crate.get("repository") or crate.get("documentation")

    for entry in data.get("versions") or []:
        if isinstance(entry, dict) and entry.get("num") == version:
            metadata["license"] = entry.get("license")
            break
    return metadata
