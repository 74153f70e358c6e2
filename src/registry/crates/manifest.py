"""Local crates read from Cargo.toml manifests.

A local crate directory becomes the root of a resolution run. Crates it
reaches through ``path`` dependencies are read as well; everything else is
left to the registry.
"""
from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from constants import DependencyKinds
from errors import ManifestError, RegistryError
from versioning.models import DependencyRequirement, NodeKey, PackageSource

logger = logging.getLogger(__name__)

MANIFEST_FILE = "Cargo.toml"

# Cargo accepts both spellings of the build and dev tables.
_DEPENDENCY_TABLES = (
    ("dependencies", DependencyKinds.NORMAL.value),
    ("build-dependencies", DependencyKinds.BUILD.value),
    ("build_dependencies", DependencyKinds.BUILD.value),
    ("dev-dependencies", DependencyKinds.DEV.value),
    ("dev_dependencies", DependencyKinds.DEV.value),
)


@dataclass(frozen=True)
class LocalCrate:
    """A crate read from a directory on disk."""
    name: str
    version: str
    path: str
    dependencies: Tuple[DependencyRequirement, ...] = ()
    metadata: Dict[str, Optional[str]] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> NodeKey:
        return NodeKey(self.name, self.version)

    @property
    def source_url(self) -> str:
        return Path(self.path).as_uri()


def _load_toml(manifest: str) -> Dict[str, Any]:
    try:
        import tomllib as toml  # type: ignore  # pylint: disable=import-outside-toplevel
    except ImportError:
        import tomli as toml  # type: ignore  # pylint: disable=import-outside-toplevel

    try:
        with open(manifest, "rb") as fh:
            return toml.load(fh)
    except OSError as exc:
        raise ManifestError(f"could not read {manifest}", manifest) from exc
    except toml.TOMLDecodeError as exc:
        raise ManifestError(f"could not parse {manifest}", manifest) from exc


def _dependency_tables(data: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield (kind, table) for the top-level and target-specific dependency tables."""
    targets = data.get("target") or {}
    scopes = [data] + [t for t in targets.values() if isinstance(t, dict)]
    for scope in scopes:
        for key, kind in _DEPENDENCY_TABLES:
            table = scope.get(key)
            if isinstance(table, dict):
                yield kind, table


def _package_metadata(package: Dict[str, Any]) -> Dict[str, Optional[str]]:
    description = package.get("description")
    description = description.strip() if isinstance(description, str) and description.strip() else None
    home_page = package.get("homepage") or package.get("repository")
    license_ = package.get("license")
    return {
        "home_page": home_page if isinstance(home_page, str) else None,
        "synopsis": description.splitlines()[0].rstrip(".") if description else None,
        "description": description,
        "license": license_ if isinstance(license_, str) else None,
    }


class _ManifestReader:
    """Parses manifests once per directory."""

    def __init__(self) -> None:
        self._parsed: Dict[str, Tuple[Dict[str, Any], str, str]] = {}

    def header(self, directory: str) -> Tuple[Dict[str, Any], str, str]:
        """Parsed manifest, crate name and version of the crate at ``directory``."""
        if directory not in self._parsed:
            manifest = os.path.join(directory, MANIFEST_FILE)
            data = _load_toml(manifest)
            package = data.get("package")
            if not isinstance(package, dict) or not package.get("name"):
                raise ManifestError(f"no [package] section in {manifest}", manifest)
            for key in ("name", "version"):
                if isinstance(package.get(key), dict):
                    raise ManifestError(
                        f"{manifest}: package.{key} inherited from a workspace is not supported", manifest
                    )
            # Cargo defaults a missing version to 0.0.0.
            self._parsed[directory] = (data, package["name"], package.get("version") or "0.0.0")
        return self._parsed[directory]

    def crate(self, directory: str, include_dev: bool) -> Tuple[LocalCrate, List[str]]:
        """The crate at ``directory`` and the directories of its path dependencies."""
        data, name, version = self.header(directory)
        manifest = os.path.join(directory, MANIFEST_FILE)
        requirements: List[DependencyRequirement] = []
        children: List[str] = []
        for kind, table in _dependency_tables(data):
            if kind == DependencyKinds.DEV.value and not include_dev:
                continue
            for dep_name, spec in table.items():
                if isinstance(spec, str):
                    requirements.append(DependencyRequirement(name=dep_name, requirement=spec, kind=kind))
                    continue
                if not isinstance(spec, dict):
                    raise ManifestError(f"{manifest}: malformed dependency {dep_name}", manifest)
                if spec.get("workspace"):
                    raise ManifestError(
                        f"{manifest}: dependency {dep_name} inherited from a workspace is not supported",
                        manifest,
                    )
                optional = bool(spec.get("optional", False))
                if "path" in spec:
                    # A path dependency always uses the local copy, whatever its version requirement.
                    child = os.path.normpath(os.path.join(directory, spec["path"]))
                    _, child_name, child_version = self.header(child)
                    requirements.append(DependencyRequirement(
                        name=child_name, requirement=f"={child_version}", optional=optional, kind=kind
                    ))
                    children.append(child)
                elif "version" in spec:
                    requirements.append(DependencyRequirement(
                        name=spec.get("package") or dep_name,
                        requirement=spec["version"],
                        optional=optional,
                        kind=kind,
                    ))
                elif "git" in spec:
                    raise ManifestError(f"{manifest}: git dependency {dep_name} is not supported", manifest)
                else:
                    raise ManifestError(
                        f"{manifest}: dependency {dep_name} has no version, path or git source", manifest
                    )
        crate = LocalCrate(
            name=name,
            version=version,
            path=directory,
            dependencies=tuple(requirements),
            metadata=_package_metadata(data["package"]),
        )
        return crate, children


def load_local_crates(directory: str, include_dev: bool = False) -> List[LocalCrate]:
    """Read the crate at ``directory`` and every crate reachable through path dependencies.

    The crate at ``directory`` comes first. Dev-dependencies are only read for
    that crate, as Cargo does.

    Raises:
        ManifestError: If a manifest is missing, malformed or uses an
            unsupported dependency source.
    """
    reader = _ManifestReader()
    root = os.path.abspath(directory)
    seen = {root}
    queue = deque([root])
    crates: List[LocalCrate] = []
    while queue:
        current = queue.popleft()
        crate, children = reader.crate(current, include_dev=include_dev and current == root)
        logger.debug("Read local crate %s from %s", crate.key, current)
        crates.append(crate)
        for child in children:
            if child not in seen:
                seen.add(child)
                queue.append(child)
    return crates


class LocalCrateClient:
    """Registry client that answers for local crates and defers everything else.

    Local versions are listed ahead of the published ones; a crate that was
    never published only has its local version.
    """

    def __init__(self, client, crates: Sequence[LocalCrate]):
        self.client = client
        self._crates = {crate.key: crate for crate in crates}
        self._local_versions: Dict[str, List[str]] = {}
        for crate in crates:
            self._local_versions.setdefault(crate.name, []).append(crate.version)

    def local_crate(self, key: NodeKey) -> Optional[LocalCrate]:
        return self._crates.get(key)

    def list_versions(self, name: str) -> List[str]:
        local = self._local_versions.get(name)
        if local is None:
            return self.client.list_versions(name)
        try:
            published = self.client.list_versions(name)
        except RegistryError as exc:
            logger.debug("Local crate %s is not published: %s", name, exc)
            published = []
        return list(local) + [v for v in published if v not in local]

    def get_dependencies(self, name: str, version: str) -> List[DependencyRequirement]:
        crate = self._crates.get(NodeKey(name, version))
        if crate is not None:
            return list(crate.dependencies)
        return self.client.get_dependencies(name, version)

    def get_source(self, name: str, version: str) -> PackageSource:
        crate = self._crates.get(NodeKey(name, version))
        if crate is not None:
            return PackageSource(url=crate.source_url)
        return self.client.get_source(name, version)
