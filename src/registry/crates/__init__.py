"""crates.io registry package.

This package provides the crates.io registry support:
- index.py: local snapshot of the sparse index
- client.py: version lists, dependencies and source locations read from the snapshot
- enrich.py: description/license metadata from the crates.io API
- manifest.py: local crates read from Cargo.toml
"""

from .index import IndexSnapshot, entry_path  # noqa: F401
from .client import CratesRegistryClient  # noqa: F401
from .enrich import fetch_crate_metadata  # noqa: F401
from .manifest import LocalCrate, LocalCrateClient, load_local_crates  # noqa: F401

__all__ = [
    "IndexSnapshot",
    "entry_path",
    "CratesRegistryClient",
    "fetch_crate_metadata",
    "LocalCrate",
    "LocalCrateClient",
    "load_local_crates",
]
