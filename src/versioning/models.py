"""Data models for crate version selection and dependency resolution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from constants import DependencyKinds

# Crate names are case-sensitive and compared verbatim.
PackageName = str
Version = str


class SelectionPolicy(Enum):
    """Which satisfying version the selector picks."""
    EARLIEST = "earliest"
    LATEST = "latest"


class NodeKey(NamedTuple):
    """Identity of one resolved unit of work: a crate at one version."""
    name: PackageName
    version: Version

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DependencyRequirement:
    """One declared dependency of a crate version, as listed by the registry."""
    name: PackageName
    requirement: str
    optional: bool = False
    kind: str = DependencyKinds.NORMAL.value


@dataclass(frozen=True)
class PackageSource:
    """Where a crate version's source archive comes from."""
    url: str
    checksum: Optional[str] = None


@dataclass(frozen=True)
class ResolvedNode:
    """A crate version with the keys of its direct dependencies, in declared order."""
    key: NodeKey
    dependencies: Tuple[NodeKey, ...] = ()
    source: Optional[PackageSource] = None

    @property
    def name(self) -> PackageName:
        return self.key.name

    @property
    def version(self) -> Version:
        return self.key.version


@dataclass
class ResolutionGraph:
    """All nodes discovered during one resolution run, in discovery order.

    A key, once added, is never replaced.
    """
    _nodes: Dict[NodeKey, ResolvedNode] = field(default_factory=dict)

    def add(self, node: ResolvedNode) -> None:
        if node.key in self._nodes:
            raise ValueError(f"{node.key} is already resolved")
        self._nodes[node.key] = node

    def get(self, key: NodeKey) -> Optional[ResolvedNode]:
        return self._nodes.get(key)

    def __getitem__(self, key: NodeKey) -> ResolvedNode:
        return self._nodes[key]

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[ResolvedNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def keys(self) -> List[NodeKey]:
        return list(self._nodes)

    def missing_dependencies(self) -> List[Tuple[NodeKey, NodeKey]]:
        """Return (dependent, dependency) pairs whose dependency is not in the graph."""
        missing = []
        for node in self._nodes.values():
            for dep in node.dependencies:
                if dep not in self._nodes:
                    missing.append((node.key, dep))
        return missing

    def is_closed(self) -> bool:
        """True when every referenced dependency is itself a node of the graph."""
        return not self.missing_dependencies()
