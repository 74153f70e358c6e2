"""crates.io registry client: version lists and per-version dependencies."""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

from constants import Constants, DependencyKinds
from errors import RegistryError
from versioning.models import DependencyRequirement, PackageSource

from .index import IndexSnapshot

logger = logging.getLogger(__name__)


class CratesRegistryClient:
    """Read-only view of the crates.io index used by the resolver.

    Records are cached per crate for the lifetime of the client; the cache is
    guarded by a lock because the resolver may call from worker threads.
    """

    def __init__(self, snapshot: IndexSnapshot, include_dev: bool = False, include_yanked: bool = False):
        self.snapshot = snapshot
        self.include_dev = include_dev
        self.include_yanked = include_yanked
        self._records: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _crate_records(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            if name in self._records:
                return self._records[name]
        records = self.snapshot.entries(name)
        with self._lock:
            self._records[name] = records
        return records

    def _version_record(self, name: str, version: str) -> Dict[str, Any]:
        for record in self._crate_records(name):
            if record.get("vers") == version:
                return record
        raise RegistryError(f"could not find version {version} of crate {name}", name, version)

    def list_versions(self, name: str) -> List[str]:
        """Published versions of ``name`` in index (publication) order."""
        versions = [
            record["vers"]
            for record in self._crate_records(name)
            if self.include_yanked or not record.get("yanked", False)
        ]
        logger.debug("Crate %s has %d candidate versions", name, len(versions))
        return versions

    def get_dependencies(self, name: str, version: str) -> List[DependencyRequirement]:
        """Declared dependencies of ``name`` at ``version``, in declared order.

        Renamed dependencies are reported under the real crate name.
        """
        record = self._version_record(name, version)
        requirements = []
        for dep in record.get("deps") or []:
            if not isinstance(dep, dict) or "name" not in dep:
                raise RegistryError(
                    f"malformed dependency entry in crate {name} version {version}", name, version
                )
            kind = dep.get("kind") or DependencyKinds.NORMAL.value
            if kind == DependencyKinds.DEV.value and not self.include_dev:
                continue
            requirements.append(
                DependencyRequirement(
                    name=dep.get("package") or dep["name"],
                    requirement=dep.get("req", "*"),
                    optional=bool(dep.get("optional", False)),
                    kind=kind,
                )
            )
        return requirements

    def get_source(self, name: str, version: str) -> PackageSource:
        """Download location and index checksum for ``name`` at ``version``."""
        record = self._version_record(name, version)
        return PackageSource(
            url=Constants.DOWNLOAD_URL_TEMPLATE.format(name=name, version=version),
            checksum=record.get("cksum"),
        )
