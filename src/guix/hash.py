"""Content hashes of crate sources, computed with ``guix hash`` and cached on disk."""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import subprocess
import threading
from typing import Dict, Optional
from urllib.parse import unquote, urlparse

import requests

from common.http_client import download_to
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import HashError

logger = logging.getLogger(__name__)


class HashStore:
    """Persistent mapping of source URL to Guix base32 hash.

    The JSON file is read on first access and rewritten after every insertion.
    """

    def __init__(self, path: str):
        self.path = path
        self._hashes: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if self._hashes is None:
            if os.path.isfile(self.path):
                try:
                    with open(self.path, "r", encoding="utf-8") as fh:
                        data = json.load(fh)
                except (OSError, ValueError) as exc:
                    raise HashError(f"could not open hash database {self.path}", self.path) from exc
                self._hashes = data if isinstance(data, dict) else {}
            else:
                self._hashes = {}
        return self._hashes

    def get(self, url: str) -> Optional[str]:
        with self._lock:
            return self._load().get(url)

    def insert(self, url: str, value: str) -> None:
        with self._lock:
            hashes = self._load()
            hashes[url] = value
            try:
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
                with open(self.path, "w", encoding="utf-8") as fh:
                    json.dump(hashes, fh, indent=2, sort_keys=True)
            except OSError as exc:
                raise HashError(f"could not flush hash database {self.path}", url) from exc


def guix_hash(path: str) -> str:
    """Run ``guix hash`` on a file, or ``guix hash -rx`` on a directory.

    Raises:
        HashError: If guix is missing or exits non-zero.
    """
    if os.path.isdir(path):
        command = ["guix", "hash", "-rx", path]
    else:
        command = ["guix", "hash", path]
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise HashError(f"could not run {' '.join(command)}", path) from exc
    if result.returncode != 0:
        raise HashError(
            f"guix hash failed for {path}: {result.stderr.strip() or result.returncode}", path
        )
    return result.stdout.strip()


def _download_name(url: str) -> str:
    digest = hashlib.sha256(url.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=") + ".tar.gz"


def compute_hash(url: str, store: HashStore, tmpdir: str) -> str:
    """Return the Guix hash of the source at ``url``.

    Cached hashes are returned without network access; anything else is
    downloaded into ``tmpdir`` first. ``file://`` URLs are hashed in place on
    every call and never cached.

    Raises:
        HashError: On download, hashing or cache failures.
    """
    parsed = urlparse(url)
    if parsed.scheme == "file":
        local_path = unquote(parsed.path)
        if not os.path.exists(local_path):
            raise HashError(f"URL is not an existing file path: {url}", url)
        return guix_hash(local_path)

    cached = store.get(url)
    if cached is not None:
        return cached
    logger.warning("hash cache miss for %s", safe_url(url))

    with Timer() as timer:
        local_path = os.path.join(tmpdir, _download_name(url))
        try:
            download_to(url, local_path)
        except (requests.RequestException, OSError) as exc:
            raise HashError(f"could not download {safe_url(url)}", url) from exc
        value = guix_hash(local_path)

    if is_debug_enabled(logger):
        logger.debug(
            "Computed source hash",
            extra=extra_context(
                event="hash",
                component="guix",
                action="compute_hash",
                outcome="success",
                duration_ms=timer.duration_ms(),
                target=safe_url(url)
            )
        )
    store.insert(url, value)
    return value
