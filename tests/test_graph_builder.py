"""Tests for the two-pass graph builder."""

import xml.etree.ElementTree as ET

import pytest
from depgraph.errors import MetadataLookupError
from depgraph.filters import parse_includes
from depgraph.graph_builder import DependencyGraphBuilder
from depgraph.models import Dependency, DependencyNode
from depgraph.pom import PomDependencyLookup
from depgraph.scope import Scope
from depgraph.tree_providers import parse_dependency_tree


class FakeLookup:
    """Declared dependencies by identity; unknown identities fail like a missing POM."""

    def __init__(self, declared):
        self.declared = declared
        self.calls = []

    def get_dependencies(self, dependency):
        self.calls.append(dependency.unique_key())
        if dependency.identity not in self.declared:
            raise MetadataLookupError(dependency.identity, "POM not found")
        return self.declared[dependency.identity]


def dep(artifact_id, version="1.0", scope="compile", group_id="org.foo"):
    return Dependency(group_id=group_id, artifact_id=artifact_id, version=version, scope=scope)


def node(dependency, *children):
    n = DependencyNode(dependency=dependency)
    for child in children:
        n.add_child(child)
    return n


def root_node(*children):
    n = DependencyNode(dependency=Dependency("com.example", "app", "1.0"), is_root=True)
    for child in children:
        n.add_child(child)
    return n


ROOT = "com.example:app:jar:1.0"


class TestTrueDependencyTree:
    """Tests for pass 1."""

    def test_tree_becomes_graph(self):
        tree = root_node(
            node(dep("a"), node(dep("c", scope="runtime"))),
            node(dep("b", scope="test")),
        )
        builder = DependencyGraphBuilder(FakeLookup({}))
        builder.add_true_dependency_tree(tree)
        graph = builder.graph

        assert graph.root.name == ROOT
        assert graph.root.primary_scope is Scope.ROOT
        assert [v.name for v in graph.vertices()] == [
            ROOT, "org.foo:a:jar:1.0", "org.foo:c:jar:1.0", "org.foo:b:jar:1.0"
        ]
        assert graph.get_vertex("org.foo:c:jar:1.0").primary_scope is Scope.RUNTIME
        assert graph.contains_edge(ROOT, "org.foo:a:jar:1.0", Scope.COMPILE)
        assert graph.contains_edge("org.foo:a:jar:1.0", "org.foo:c:jar:1.0", Scope.RUNTIME)
        assert graph.contains_edge(ROOT, "org.foo:b:jar:1.0", Scope.TEST)
        assert graph.stats()["ignored_vertices"] == 0
        assert graph.stats()["ignored_edges"] == 0

    def test_excluded_nodes_attach_children_to_ancestor(self):
        tree = root_node(
            node(dep("x", group_id="org.drop"), node(dep("y", group_id="org.keep"))),
        )
        builder = DependencyGraphBuilder(FakeLookup({}), parse_includes("org.keep"))
        builder.add_true_dependency_tree(tree)
        graph = builder.graph

        assert "org.drop:x:jar:1.0" not in graph
        assert graph.contains_edge(ROOT, "org.keep:y:jar:1.0", Scope.COMPILE)

    def test_root_is_never_filtered(self):
        builder = DependencyGraphBuilder(FakeLookup({}), parse_includes("org.keep"))
        builder.add_true_dependency_tree(root_node(node(dep("x"))))
        assert builder.graph.vertex_count == 1
        assert builder.graph.root.name == ROOT

    def test_unknown_scope_is_skipped(self, caplog):
        tree = root_node(node(dep("x", scope="bogus"), node(dep("y"))))
        builder = DependencyGraphBuilder(FakeLookup({}))
        builder.add_true_dependency_tree(tree)

        assert "org.foo:x:jar:1.0" not in builder.graph
        assert builder.graph.contains_edge(ROOT, "org.foo:y:jar:1.0", Scope.COMPILE)
        assert "unknown scope 'bogus'" in caplog.text

    def test_shared_node_visited_once(self):
        shared = node(dep("s"))
        tree = root_node(node(dep("a"), shared), node(dep("b"), shared))
        builder = DependencyGraphBuilder(FakeLookup({}))
        builder.add_true_dependency_tree(tree)

        assert builder.graph.contains_edge("org.foo:a:jar:1.0", "org.foo:s:jar:1.0", Scope.COMPILE)
        assert not builder.graph.contains_edge("org.foo:b:jar:1.0", "org.foo:s:jar:1.0", Scope.COMPILE)


class TestIgnoredDependencies:
    """Tests for pass 2."""

    def test_requires_root(self):
        builder = DependencyGraphBuilder(FakeLookup({}))
        with pytest.raises(ValueError):
            builder.add_ignored_dependencies([dep("a")])

    def test_declared_but_dropped_and_demoted(self):
        """R -> A (compile); A declares B (test) and C (runtime)."""
        a = dep("a")
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [dep("b", scope="test"), dep("c", scope="runtime")],
            "org.foo:c:jar:1.0": [],
        })
        builder = DependencyGraphBuilder(lookup)
        graph = builder.build(root_node(node(a)), [a])

        assert "org.foo:b:jar:1.0" not in graph
        c = graph.get_vertex("org.foo:c:jar:1.0")
        assert c.primary_scope is Scope.RUNTIME
        assert c.ignored is True
        edge = graph.get_edge("org.foo:a:jar:1.0", "org.foo:c:jar:1.0", Scope.RUNTIME)
        assert edge.ignored is True

        # The true relation is untouched by the shadow walk
        assert graph.get_vertex("org.foo:a:jar:1.0").ignored is False
        assert graph.get_edge(ROOT, "org.foo:a:jar:1.0", Scope.COMPILE).ignored is False
        assert graph.edge_count == 2

    def test_conflict_loser_is_ignored_vertex(self):
        """Maven picked x:2.0, a still declares x:1.0."""
        a, x2 = dep("a"), dep("x", "2.0")
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [dep("x", "1.0")],
            "org.foo:x:jar:2.0": [],
            "org.foo:x:jar:1.0": [],
        })
        graph = DependencyGraphBuilder(lookup).build(root_node(node(a), node(x2)), [a, x2])

        assert graph.get_vertex("org.foo:x:jar:2.0").ignored is False
        assert graph.get_vertex("org.foo:x:jar:1.0").ignored is True
        assert graph.get_edge("org.foo:a:jar:1.0", "org.foo:x:jar:1.0", Scope.COMPILE).ignored is True

    def test_parallel_edge_for_other_scope(self):
        a = dep("a")
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [dep("c", scope="runtime")],
            "org.foo:c:jar:1.0": [],
        })
        tree = root_node(node(a, node(dep("c"))))
        graph = DependencyGraphBuilder(lookup).build(tree, [a])

        c = graph.get_vertex("org.foo:c:jar:1.0")
        assert c.primary_scope is Scope.COMPILE
        assert c.ignored is False
        assert graph.get_edge("org.foo:a:jar:1.0", "org.foo:c:jar:1.0", Scope.COMPILE).ignored is False
        assert graph.get_edge("org.foo:a:jar:1.0", "org.foo:c:jar:1.0", Scope.RUNTIME).ignored is True

    def test_seed_scope_propagates(self):
        p = dep("p", scope="provided")
        lookup = FakeLookup({
            "org.foo:p:jar:1.0": [dep("q")],
            "org.foo:q:jar:1.0": [],
        })
        graph = DependencyGraphBuilder(lookup).build(root_node(), [p])

        assert graph.get_edge(ROOT, "org.foo:p:jar:1.0", Scope.PROVIDED).ignored is True
        q = graph.get_vertex("org.foo:q:jar:1.0")
        assert q.primary_scope is Scope.PROVIDED
        assert graph.contains_edge("org.foo:p:jar:1.0", "org.foo:q:jar:1.0", Scope.PROVIDED)

    def test_cycles_terminate(self):
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [dep("b")],
            "org.foo:b:jar:1.0": [dep("a")],
        })
        graph = DependencyGraphBuilder(lookup).build(root_node(), [dep("a")])

        assert graph.contains_edge("org.foo:a:jar:1.0", "org.foo:b:jar:1.0", Scope.COMPILE)
        assert graph.contains_edge("org.foo:b:jar:1.0", "org.foo:a:jar:1.0", Scope.COMPILE)
        assert sorted(lookup.calls) == ["org.foo:a:jar:1.0:compile", "org.foo:b:jar:1.0:compile"]

    def test_each_artifact_and_scope_expanded_once(self):
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [dep("s")],
            "org.foo:b:jar:1.0": [dep("s"), dep("s2", scope="runtime")],
            "org.foo:s:jar:1.0": [],
            "org.foo:s2:jar:1.0": [],
        })
        graph = DependencyGraphBuilder(lookup).build(root_node(), [dep("a"), dep("b")])

        assert lookup.calls.count("org.foo:s:jar:1.0:compile") == 1
        assert graph.contains_edge("org.foo:a:jar:1.0", "org.foo:s:jar:1.0", Scope.COMPILE)
        assert graph.contains_edge("org.foo:b:jar:1.0", "org.foo:s:jar:1.0", Scope.COMPILE)
        assert "org.foo:s2:jar:1.0:runtime" in lookup.calls

    def test_filters_apply_to_declared_dependencies(self):
        lookup = FakeLookup({
            "org.keep:a:jar:1.0": [dep("x", group_id="org.drop"), dep("y", group_id="org.keep")],
            "org.keep:y:jar:1.0": [],
        })
        builder = DependencyGraphBuilder(lookup, parse_includes("org.keep"))
        graph = builder.build(root_node(), [dep("a", group_id="org.keep"), dep("z", group_id="org.drop")])

        assert "org.drop:x:jar:1.0" not in graph
        assert "org.drop:z:jar:1.0" not in graph
        assert graph.contains_edge("org.keep:a:jar:1.0", "org.keep:y:jar:1.0", Scope.COMPILE)

    def test_lookup_failure_propagates(self):
        builder = DependencyGraphBuilder(FakeLookup({}))
        with pytest.raises(MetadataLookupError) as exc_info:
            builder.build(root_node(), [dep("missing")])
        assert "org.foo:missing:jar:1.0" in str(exc_info.value)

    def test_declared_dependencies_not_modified(self):
        c = dep("c", scope="compile")
        lookup = FakeLookup({
            "org.foo:r:jar:1.0": [c],
            "org.foo:c:jar:1.0": [],
        })
        DependencyGraphBuilder(lookup).build(root_node(), [dep("r", scope="runtime")])
        assert c.scope == "compile"

    def test_build_is_idempotent_for_true_tree(self):
        """Running pass 2 over exactly the true tree adds nothing."""
        a, b = dep("a"), dep("b")
        lookup = FakeLookup({
            "org.foo:a:jar:1.0": [b],
            "org.foo:b:jar:1.0": [],
        })
        graph = DependencyGraphBuilder(lookup).build(root_node(node(a, node(b))), [a])

        assert graph.stats() == {"vertices": 3, "ignored_vertices": 0, "edges": 2, "ignored_edges": 0}


class PomRepository:
    """Serves POM documents by groupId:artifactId:version."""

    def __init__(self, poms):
        self.poms = poms

    def fetch_pom(self, group_id, artifact_id, version):
        return ET.fromstring(self.poms[f"{group_id}:{artifact_id}:{version}"])


class TestParsedTreeWithPomLookup:
    """Both passes fed from maven's tree output and the declaring POMs."""

    def test_kept_test_jar_is_not_ignored(self):
        tree = parse_dependency_tree(
            "com.example:app:jar:1.0\n"
            "\\- org.foo:core:test-jar:tests:1.0:test\n"
        )
        lookup = PomDependencyLookup(PomRepository({
            "org.foo:core:1.0": "<project><groupId>org.foo</groupId><artifactId>core</artifactId>"
                                "<version>1.0</version></project>",
        }))
        project = [Dependency("org.foo", "core", "1.0", type="test-jar", classifier="tests", scope="test")]
        project_pom = lookup.build_model(ET.fromstring(
            "<project><groupId>com.example</groupId><artifactId>app</artifactId><version>1.0</version>"
            "<dependencies><dependency><groupId>org.foo</groupId><artifactId>core</artifactId>"
            "<version>1.0</version><type>test-jar</type><scope>test</scope></dependency></dependencies>"
            "</project>"
        ), None)

        assert [d.identity for d in project_pom.dependencies] == [d.identity for d in project]

        graph = DependencyGraphBuilder(lookup).build(tree, project_pom.dependencies)

        assert [(v.name, v.ignored) for v in graph.vertices()] == [
            ("com.example:app:jar:1.0", False),
            ("org.foo:core:test-jar:tests:1.0", False),
        ]
        assert graph.stats()["ignored_vertices"] == 0
        assert graph.stats()["ignored_edges"] == 0
