"""Tests for transitive dependency resolution."""

import pytest

from errors import RegistryError, VersionNotFoundError
from resolution.resolver import DependencyResolver
from versioning.models import NodeKey, SelectionPolicy
from versioning.selector import VersionSelector


DIAMOND = {
    "A": {"1.0.0": [("B", "^1"), ("C", "^1")]},
    "B": {"1.0.0": [("D", "^1")]},
    "C": {"1.0.0": [("D", "^1")]},
    "D": {"1.0.0": []},
}


@pytest.fixture(params=[1, 4], ids=["sequential", "concurrent"])
def jobs(request):
    return request.param


class TestScenarios:
    """Reference scenarios, sequential and concurrent."""

    def test_num_traits_autocfg(self, fake_registry, jobs):
        client = fake_registry({
            "num-traits": {"0.2.8": [("autocfg", "*")], "0.2.11": [("autocfg", "^1")]},
            "autocfg": {"0.1.0": [], "0.1.6": [], "1.0.0": []},
        })
        graph = DependencyResolver(client, jobs=jobs).resolve("num-traits")

        assert len(graph) == 2
        root = graph[NodeKey("num-traits", "0.2.8")]
        assert root.dependencies == (NodeKey("autocfg", "0.1.0"),)
        assert graph[NodeKey("autocfg", "0.1.0")].dependencies == ()

    def test_diamond_fetches_shared_dependency_once(self, fake_registry, jobs):
        client = fake_registry(DIAMOND)
        graph = DependencyResolver(client, jobs=jobs).resolve("A", "1.0.0")

        assert len(graph) == 4
        assert client.dependency_calls[("D", "1.0.0")] == 1
        assert all(count == 1 for count in client.dependency_calls.values())

    def test_self_cycle_terminates(self, fake_registry, jobs):
        client = fake_registry({"A": {"1.0.0": [("A", "=1.0.0")]}})
        graph = DependencyResolver(client, jobs=jobs).resolve("A", "1.0.0")

        assert graph.keys() == [NodeKey("A", "1.0.0")]
        assert graph[NodeKey("A", "1.0.0")].dependencies == (NodeKey("A", "1.0.0"),)
        assert client.dependency_calls[("A", "1.0.0")] == 1

    def test_mutual_cycle_terminates(self, fake_registry, jobs):
        client = fake_registry({
            "A": {"1.0.0": [("B", "^1")]},
            "B": {"1.0.0": [("A", "^1")]},
        })
        graph = DependencyResolver(client, jobs=jobs).resolve("A")

        assert len(graph) == 2
        assert graph.is_closed()

    def test_distinct_versions_are_distinct_nodes(self, fake_registry, jobs):
        client = fake_registry({
            "app": {"1.0.0": [("log", "^0.3"), ("helper", "^1")]},
            "helper": {"1.0.0": [("log", "^0.4")]},
            "log": {"0.3.9": [], "0.4.0": []},
        })
        graph = DependencyResolver(client, jobs=jobs).resolve("app")

        assert NodeKey("log", "0.3.9") in graph
        assert NodeKey("log", "0.4.0") in graph
        assert len(graph) == 4


class TestProperties:
    """Closure, determinism and ordering."""

    def test_closure(self, fake_registry, jobs):
        graph = DependencyResolver(fake_registry(DIAMOND), jobs=jobs).resolve("A")
        for node in graph:
            for dep in node.dependencies:
                assert dep in graph

    def test_determinism(self, fake_registry, jobs):
        first = DependencyResolver(fake_registry(DIAMOND), jobs=jobs).resolve("A")
        second = DependencyResolver(fake_registry(DIAMOND), jobs=jobs).resolve("A")

        assert first.keys() == second.keys()
        assert [n.dependencies for n in first] == [n.dependencies for n in second]

    def test_root_first_breadth_first_order(self, fake_registry):
        graph = DependencyResolver(fake_registry(DIAMOND)).resolve("A")
        assert [key.name for key in graph.keys()] == ["A", "B", "C", "D"]

    def test_sequential_and_concurrent_agree(self, fake_registry):
        sequential = DependencyResolver(fake_registry(DIAMOND), jobs=1).resolve("A")
        concurrent = DependencyResolver(fake_registry(DIAMOND), jobs=3).resolve("A")
        assert sequential.keys() == concurrent.keys()

    def test_dependency_order_is_declared_order(self, fake_registry):
        client = fake_registry({
            "root": {"1.0.0": [("zeta", "*"), ("alpha", "*"), ("mid", "*")]},
            "zeta": {"1.0.0": []},
            "alpha": {"1.0.0": []},
            "mid": {"1.0.0": []},
        })
        graph = DependencyResolver(client).resolve("root")
        assert [d.name for d in graph[NodeKey("root", "1.0.0")].dependencies] == ["zeta", "alpha", "mid"]

    def test_source_metadata_attached(self, fake_registry):
        graph = DependencyResolver(fake_registry(DIAMOND)).resolve("A")
        assert graph[NodeKey("D", "1.0.0")].source.url.endswith("/D/1.0.0.crate")


class TestRootVersion:
    """Pinned and default root versions."""

    def test_default_is_earliest_published(self, fake_registry):
        client = fake_registry({"A": {"2.0.0": [], "1.5.0": [], "1.0.0": []}})
        graph = DependencyResolver(client).resolve("A")
        assert graph.keys() == [NodeKey("A", "1.0.0")]

    def test_pinned_version(self, fake_registry):
        client = fake_registry({"A": {"1.0.0": [], "2.0.0": []}})
        graph = DependencyResolver(client).resolve("A", "2.0.0")
        assert graph.keys() == [NodeKey("A", "2.0.0")]

    def test_pinned_version_missing(self, fake_registry):
        client = fake_registry({"A": {"1.0.0": []}})
        with pytest.raises(VersionNotFoundError) as exc_info:
            DependencyResolver(client).resolve("A", "3.0.0")
        assert exc_info.value.name == "A"

    def test_latest_policy_applies_to_dependencies(self, fake_registry):
        client = fake_registry({
            "A": {"1.0.0": [("B", "^1")]},
            "B": {"1.0.0": [], "1.4.0": []},
        })
        resolver = DependencyResolver(client, selector=VersionSelector(SelectionPolicy.LATEST))
        graph = resolver.resolve("A", "1.0.0")
        assert graph[NodeKey("A", "1.0.0")].dependencies == (NodeKey("B", "1.4.0"),)


class TestFailures:
    """Failures abort resolution with no graph."""

    def test_unknown_root(self, fake_registry, jobs):
        with pytest.raises(RegistryError):
            DependencyResolver(fake_registry({}), jobs=jobs).resolve("missing")

    def test_deep_fetch_failure_propagates(self, fake_registry, jobs):
        client = fake_registry(DIAMOND, fail_on=[("D", "1.0.0")])
        with pytest.raises(RegistryError) as exc_info:
            DependencyResolver(client, jobs=jobs).resolve("A")
        assert exc_info.value.name == "D"

    def test_unknown_dependency(self, fake_registry, jobs):
        client = fake_registry({"A": {"1.0.0": [("ghost", "*")]}})
        with pytest.raises(RegistryError):
            DependencyResolver(client, jobs=jobs).resolve("A")

    def test_unsatisfiable_dependency(self, fake_registry, jobs):
        client = fake_registry({"A": {"1.0.0": [("B", "^2")]}, "B": {"1.0.0": []}})
        with pytest.raises(VersionNotFoundError) as exc_info:
            DependencyResolver(client, jobs=jobs).resolve("A")
        assert exc_info.value.requirement == "^2"

    def test_invalid_jobs(self, fake_registry):
        with pytest.raises(ValueError):
            DependencyResolver(fake_registry({}), jobs=0)
