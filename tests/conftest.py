"""Shared fixtures: an in-memory registry and on-disk index snapshots."""

import json
import logging
from collections import Counter

import pytest

from common import http_client
from constants import Constants
from errors import RegistryError
from registry.crates.index import SNAPSHOT_FILE, entry_path
from versioning.models import DependencyRequirement, PackageSource


class FakeRegistryClient:
    """Registry client backed by a dict, counting every call.

    ``crates`` maps crate name -> {version: [(dep_name, requirement), ...]}.
    Versions are listed in insertion order.
    """

    def __init__(self, crates, fail_on=None):
        self.crates = crates
        self.fail_on = set(fail_on or ())
        self.dependency_calls = Counter()
        self.version_calls = Counter()

    def list_versions(self, name):
        self.version_calls[name] += 1
        if name not in self.crates:
            raise RegistryError(f"could not find crate {name}", name)
        return list(self.crates[name])

    def get_dependencies(self, name, version):
        self.dependency_calls[(name, version)] += 1
        if (name, version) in self.fail_on:
            raise RegistryError(f"could not fetch {name} {version}", name, version)
        try:
            deps = self.crates[name][version]
        except KeyError as exc:
            raise RegistryError(f"could not find version {version} of crate {name}", name, version) from exc
        return [DependencyRequirement(name=dep, requirement=req) for dep, req in deps]

    def get_source(self, name, version):
        return PackageSource(url=f"https://example.invalid/{name}/{version}.crate")


@pytest.fixture
def fake_registry():
    """Factory for FakeRegistryClient instances."""
    return FakeRegistryClient


def index_record(name, vers, deps=(), yanked=False, cksum="00"):
    """One crates.io index line as a dict."""
    return {
        "name": name,
        "vers": vers,
        "deps": [
            {
                "name": dep[0],
                "req": dep[1],
                "features": [],
                "optional": dep[2] if len(dep) > 2 else False,
                "default_features": True,
                "target": None,
                "kind": dep[3] if len(dep) > 3 else "normal",
            }
            for dep in deps
        ],
        "cksum": cksum,
        "features": {},
        "yanked": yanked,
    }


def write_index(root, records_by_crate):
    """Write an offline index snapshot under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    (root / SNAPSHOT_FILE).write_text(json.dumps({"generation": 1.0}), encoding="utf-8")
    for name, records in records_by_crate.items():
        path = root.joinpath(*entry_path(name).split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return root


@pytest.fixture
def num_traits_index(tmp_path):
    """Offline index with num-traits depending on autocfg."""
    return write_index(tmp_path / "index", {
        "num-traits": [
            index_record("num-traits", "0.2.8", deps=[("autocfg", "*", False, "build")]),
            index_record("num-traits", "0.2.11", deps=[("autocfg", "^1", False, "build")]),
        ],
        "autocfg": [
            index_record("autocfg", "0.1.0"),
            index_record("autocfg", "0.1.6"),
            index_record("autocfg", "1.0.0"),
        ],
    })


@pytest.fixture(autouse=True)
def restore_constants():
    """Undo Constants overrides applied by config tests and the CLI."""
    saved = {k: v for k, v in vars(Constants).items() if not k.startswith("__")}
    http_client.clear_cache()
    yield
    for key, value in saved.items():
        setattr(Constants, key, value)
    http_client.clear_cache()


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Drop handlers main() installs so they never outlive captured streams."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
