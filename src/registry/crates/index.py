"""On-disk snapshot of the crates.io sparse index.

Index entries are newline-delimited JSON records, one per published version,
stored under the same relative paths the sparse index serves them from.
"""
from __future__ import annotations

import json
import logging
import os
import re
import shutil
import threading
import time
from typing import Any, Dict, List, Optional

from constants import Constants
from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from errors import IndexUpdateError, RegistryError

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "snapshot.json"
CONFIG_FILE = "config.json"
# Top-level directories of the index layout: 1, 2, 3 and two-character name prefixes.
_LAYOUT_DIR_RE = re.compile(r'^[a-z0-9_-]{1,2}$')


def entry_path(name: str) -> str:
    """Relative index path for a crate name (lowercased, as the index lays it out)."""
    lower = name.lower()
    if len(lower) == 1:
        return f"1/{lower}"
    if len(lower) == 2:
        return f"2/{lower}"
    if len(lower) == 3:
        return f"3/{lower[0]}/{lower}"
    return f"{lower[0:2]}/{lower[2:4]}/{lower}"


def parse_entries(text: str, name: str) -> List[Dict[str, Any]]:
    """Parse newline-delimited index records.

    Raises:
        RegistryError: If any non-empty line is not a JSON object.
    """
    records = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise RegistryError(
                f"malformed index entry for crate {name} at line {lineno}", name
            ) from exc
        if not isinstance(record, dict) or "vers" not in record:
            raise RegistryError(f"malformed index entry for crate {name} at line {lineno}", name)
        records.append(record)
    return records


class IndexSnapshot:
    """A versioned local copy of the registry index.

    Entries missing from disk are fetched from ``base_url`` on first access
    unless the snapshot is offline. ``update()`` starts a new generation by
    dropping every cached entry.
    """

    def __init__(self, path: str, base_url: Optional[str] = None, offline: bool = False):
        self.path = path
        self.base_url = base_url or Constants.REGISTRY_URL_INDEX
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.offline = offline
        self._lock = threading.Lock()

    @property
    def generation(self) -> Optional[float]:
        """Timestamp of the last update, or None when the snapshot was never created."""
        try:
            with open(os.path.join(self.path, SNAPSHOT_FILE), "r", encoding="utf-8") as fh:
                return json.load(fh).get("generation")
        except (OSError, ValueError):
            return None

    def exists(self) -> bool:
        return os.path.isfile(os.path.join(self.path, SNAPSHOT_FILE))

    def update(self) -> None:
        """Refresh the snapshot: fetch the index config and drop cached entries.

        Raises:
            IndexUpdateError: If the index is unreachable or the cache cannot be written.
        """
        if self.offline:
            raise IndexUpdateError("cannot update the index while offline")
        logger.info("fetching crates.io index configuration from %s", safe_url(self.base_url))
        status, _, text = robust_get(self.base_url + CONFIG_FILE, use_cache=False)
        if status != 200:
            raise IndexUpdateError(f"could not update index (status {status}): {text[:200]}")
        try:
            config = json.loads(text)
        except json.JSONDecodeError as exc:
            raise IndexUpdateError("could not update index: invalid config.json") from exc

        with self._lock:
            try:
                self._drop_cached_entries()
                os.makedirs(self.path, exist_ok=True)
                with open(os.path.join(self.path, CONFIG_FILE), "w", encoding="utf-8") as fh:
                    json.dump(config, fh)
                with open(os.path.join(self.path, SNAPSHOT_FILE), "w", encoding="utf-8") as fh:
                    json.dump({"generation": time.time(), "base_url": self.base_url}, fh)
            except OSError as exc:
                raise IndexUpdateError(f"could not write index cache at {self.path}") from exc

    def _drop_cached_entries(self) -> None:
        """Remove what a previous generation wrote, and nothing else.

        Raises:
            IndexUpdateError: If the directory holds files but no snapshot.
        """
        if not os.path.isdir(self.path):
            return
        if not self.exists() and os.listdir(self.path):
            raise IndexUpdateError(
                f"refusing to update index at {self.path}: directory is not empty "
                f"and holds no {SNAPSHOT_FILE}"
            )
        for entry in os.listdir(self.path):
            full = os.path.join(self.path, entry)
            if entry in (SNAPSHOT_FILE, CONFIG_FILE) and os.path.isfile(full):
                os.remove(full)
            elif _LAYOUT_DIR_RE.match(entry) and os.path.isdir(full):
                shutil.rmtree(full)

    def entries(self, name: str) -> List[Dict[str, Any]]:
        """Return every index record for ``name``.

        Raises:
            RegistryError: If the crate is unknown or the index is unreachable.
        """
        relative = entry_path(name)
        local = os.path.join(self.path, *relative.split("/"))
        with self._lock:
            if os.path.isfile(local):
                with open(local, "r", encoding="utf-8") as fh:
                    return parse_entries(fh.read(), name)

        if self.offline:
            raise RegistryError(f"could not find crate {name} in the offline index", name)

        url = self.base_url + relative
        if is_debug_enabled(logger):
            logger.debug(
                "Fetching index entry",
                extra=extra_context(
                    event="function_entry",
                    component="index",
                    action="fetch_entry",
                    target=safe_url(url),
                    package=name
                )
            )
        status, _, text = robust_get(url)
        if status == 404:
            raise RegistryError(f"could not find crate {name}", name)
        if status != 200:
            raise RegistryError(
                f"could not fetch index entry for crate {name} (status {status})", name
            )
        records = parse_entries(text, name)

        with self._lock:
            try:
                os.makedirs(os.path.dirname(local), exist_ok=True)
                with open(local, "w", encoding="utf-8") as fh:
                    fh.write(text)
            except OSError as exc:
                logger.warning("Could not cache index entry for %s: %s", name, exc)
        return records
