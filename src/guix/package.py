"""Guix package description derived from a resolved crate."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from constants import Constants
from versioning.models import NodeKey, ResolvedNode

_KEBAB_RE = re.compile(r'[^a-z0-9]+')


def kebab_case(name: str) -> str:
    """``Foo_bar`` -> ``foo-bar``."""
    return _KEBAB_RE.sub('-', name.lower()).strip('-')


def definition_name(name: str) -> str:
    """Guix package name for a crate, e.g. ``rust-num-traits``."""
    return f"rust-{kebab_case(name)}"


def variable_name(key: NodeKey) -> str:
    """Scheme variable bound to a crate version, e.g. ``rust-num-traits-0.2.8``."""
    return f"{definition_name(key.name)}-{key.version}"


def source_url(node: ResolvedNode) -> str:
    """Source archive URL of a node, defaulting to the crates.io download URL."""
    if node.source is not None:
        return node.source.url
    return Constants.DOWNLOAD_URL_TEMPLATE.format(name=node.name, version=node.version)


@dataclass
class GuixPackage:
    """Everything needed to render one ``define-public`` form."""
    name: str
    variable: str
    crate_name: str
    version: str
    source: str
    hash: str
    build_system: str = Constants.BUILD_SYSTEM
    home_page: Optional[str] = None
    synopsis: Optional[str] = None
    description: Optional[str] = None
    license: Optional[str] = None
    # (label, variable) pairs
    cargo_inputs: List[Tuple[str, str]] = field(default_factory=list)


def package_from_node(
    node: ResolvedNode,
    hash_value: str,
    metadata: Optional[Dict[str, Optional[str]]] = None,
) -> GuixPackage:
    """Build the package description of ``node``.

    Cargo inputs keep the node's dependency order without repeats; a
    self-dependency is not an input of itself.
    """
    metadata = metadata or {}
    inputs: List[Tuple[str, str]] = []
    for dep in node.dependencies:
        entry = (definition_name(dep.name), variable_name(dep))
        if dep != node.key and entry not in inputs:
            inputs.append(entry)
    return GuixPackage(
        name=definition_name(node.name),
        variable=variable_name(node.key),
        crate_name=node.name,
        version=node.version,
        source=source_url(node),
        hash=hash_value,
        home_page=metadata.get("home_page"),
        synopsis=metadata.get("synopsis"),
        description=metadata.get("description"),
        license=metadata.get("license"),
        cargo_inputs=inputs,
    )
