"""Transitive dependency resolution over a registry client.

The resolver walks the dependency graph with an explicit work queue and a
visited set keyed by (crate, version). Each key is fetched from the registry
at most once and appears in the result at most once, which also terminates
self-referential and mutually-referential chains.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Sequence, Set

from common.logging_utils import extra_context, is_debug_enabled, Timer
from errors import ResolutionError
from versioning.models import (
    DependencyRequirement,
    NodeKey,
    PackageSource,
    ResolutionGraph,
    ResolvedNode,
)
from versioning.selector import VersionSelector, pick_exact, select_version

logger = logging.getLogger(__name__)


class RegistryClient(Protocol):
    """Read interface the resolver consumes."""

    def list_versions(self, name: str) -> List[str]:
        ...

    def get_dependencies(self, name: str, version: str) -> Sequence[DependencyRequirement]:
        ...

    def get_source(self, name: str, version: str) -> Optional[PackageSource]:
        ...


class DependencyResolver:
    """Resolve a root crate into a closed ResolutionGraph.

    Args:
        client: Registry client providing versions, dependencies and sources.
        selector: Version selection policy; earliest-version by default.
        jobs: Number of concurrent registry fetches. 1 keeps the strictly
            sequential reference behavior.
    """

    def __init__(self, client: RegistryClient, selector: Optional[VersionSelector] = None, jobs: int = 1):
        if jobs < 1:
            raise ValueError("jobs must be at least 1")
        self.client = client
        self.selector = selector or VersionSelector()
        self.jobs = jobs

    def root_key(self, root_name: str, pinned_version: Optional[str] = None) -> NodeKey:
        """Pick the root crate's version: the pin if listed, else the earliest published."""
        available = self.client.list_versions(root_name)
        if pinned_version is not None:
            return NodeKey(root_name, pick_exact(root_name, pinned_version, available))
        return NodeKey(root_name, select_version(None, available, name=root_name))

    def _expand(self, key: NodeKey) -> ResolvedNode:
        """Fetch one node's requirements and select a version for each."""
        logger.info("processing crate %s in version %s", key.name, key.version)
        dependencies = []
        for req in self.client.get_dependencies(key.name, key.version):
            version = self.selector.select(
                req.requirement, self.client.list_versions(req.name), name=req.name
            )
            dependencies.append(NodeKey(req.name, version))
        source = self.client.get_source(key.name, key.version)
        return ResolvedNode(key=key, dependencies=tuple(dependencies), source=source)

    def resolve(self, root_name: str, pinned_version: Optional[str] = None) -> ResolutionGraph:
        """Resolve ``root_name`` and everything it transitively depends on.

        Raises:
            RegistryError: A crate or version could not be read from the registry.
            VersionNotFoundError: A requirement (or the pin) matches no version.
            ResolutionError: The finished graph is not closed.
        """
        with Timer() as timer:
            root = self.root_key(root_name, pinned_version)
            if self.jobs == 1:
                graph = self._resolve_sequential(root)
            else:
                graph = self._resolve_concurrent(root)

        missing = graph.missing_dependencies()
        if missing:
            dependent, dependency = missing[0]
            raise ResolutionError(f"dependency {dependency} of {dependent} was never resolved")

        if is_debug_enabled(logger):
            logger.debug(
                "Resolution finished",
                extra=extra_context(
                    event="function_exit",
                    component="resolver",
                    action="resolve",
                    outcome="success",
                    count=len(graph),
                    duration_ms=timer.duration_ms(),
                    package=str(root)
                )
            )
        return graph

    def _resolve_sequential(self, root: NodeKey) -> ResolutionGraph:
        graph = ResolutionGraph()
        visited: Set[NodeKey] = set()
        queue = deque([root])
        while queue:
            key = queue.popleft()
            if key in visited:
                continue
            visited.add(key)
            node = self._expand(key)
            for dep in node.dependencies:
                if dep not in visited:
                    queue.append(dep)
            graph.add(node)
        return graph

    def _resolve_concurrent(self, root: NodeKey) -> ResolutionGraph:
        """Breadth-first waves; only this thread touches the visited set and graph."""
        graph = ResolutionGraph()
        visited: Set[NodeKey] = set()
        frontier: List[NodeKey] = [root]
        with ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix="carguix-resolve") as executor:
            while frontier:
                wave: List[NodeKey] = []
                for key in frontier:
                    if key not in visited:
                        visited.add(key)
                        wave.append(key)
                # map() yields in submission order and re-raises the first failure;
                # leaving the with-block waits for fetches still in flight.
                frontier = []
                for node in executor.map(self._expand, wave):
                    graph.add(node)
                    frontier.extend(dep for dep in node.dependencies if dep not in visited)
        return graph
