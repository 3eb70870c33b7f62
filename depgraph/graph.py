"""The dependency multigraph: artifacts as vertices, declared dependencies as edges."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

import networkx as nx

from .scope import Scope


@dataclass
class DependencyVertex:
    """
    A vertex in the graph, uniquely identified by the artifact name.

    The primary scope is the scope under which the vertex was first added.
    Vertices from the resolved tree are added before any ignored vertex, so
    they always keep their true scope. A vertex is ignored when it was only
    found while walking the declared dependencies, mostly because maven used
    another version of the same artifact instead.
    """

    name: str
    primary_scope: Scope = field(compare=False)
    ignored: bool = field(default=False, compare=False)

    def __hash__(self) -> int:
        return hash(self.name)

    @property
    def attributes(self) -> Dict[str, str]:
        """Colors and styles used when exporting."""
        attributes = {"color": self.primary_scope.color}
        if self.ignored:
            attributes["style"] = "dotted"
        return attributes

    def __str__(self) -> str:
        return self.name


@dataclass
class DependencyEdge:
    """
    An edge in the graph, uniquely identified by source, target and scope.

    Edges are ignored when maven did not use them: another scope took
    precedence, or the target artifact was ignored as well.
    """

    source: str
    target: str
    scope: Scope
    ignored: bool = field(default=False, compare=False)

    def __hash__(self) -> int:
        return hash((self.source, self.target, self.scope))

    @property
    def attributes(self) -> Dict[str, str]:
        """Colors and styles used when exporting."""
        attributes = {"color": self.scope.color}
        if self.ignored:
            attributes["style"] = "dotted"
        return attributes

    def __str__(self) -> str:
        return f"({self.source} : {self.target} - {self.scope})"


class DependencyGraph:
    """
    Directed multigraph of dependency vertices and scoped edges.

    Wraps a networkx MultiDiGraph keyed by vertex name, with the edge scope
    as the multigraph key. Vertices and edges can only be added: the graph is
    built once and exported once.
    """

    def __init__(self):
        self._graph = nx.MultiDiGraph()
        self._root: Optional[DependencyVertex] = None

    def add_vertex(self, vertex: DependencyVertex) -> bool:
        """
        Add a vertex unless a vertex with the same name is already present.

        Returns:
            True if the vertex was added, False if the graph already contained it

        Raises:
            ValueError: When a second root vertex is added
        """
        if vertex.name in self._graph:
            return False
        if vertex.primary_scope is Scope.ROOT:
            if self._root is not None:
                raise ValueError(f"Graph already has root {self._root.name}, cannot add root {vertex.name}")
            self._root = vertex
        self._graph.add_node(vertex.name, vertex=vertex)
        return True

    def add_edge(self, source: str, target: str, scope: Scope, ignored: bool = False) -> bool:
        """
        Add an edge unless an edge with the same source, target and scope exists.

        Returns:
            True if the edge was added, False if the graph already contained it

        Raises:
            ValueError: When either endpoint is not in the graph
        """
        for name in (source, target):
            if name not in self._graph:
                raise ValueError(f"Vertex {name} must be added before edge {source} -> {target}")
        if self._graph.has_edge(source, target, key=scope):
            return False
        edge = DependencyEdge(source=source, target=target, scope=scope, ignored=ignored)
        self._graph.add_edge(source, target, key=scope, edge=edge)
        return True

    def get_vertex(self, name: str) -> Optional[DependencyVertex]:
        if name not in self._graph:
            return None
        return self._graph.nodes[name]["vertex"]

    def contains_edge(self, source: str, target: str, scope: Scope) -> bool:
        return self._graph.has_edge(source, target, key=scope)

    def get_edge(self, source: str, target: str, scope: Scope) -> Optional[DependencyEdge]:
        if not self._graph.has_edge(source, target, key=scope):
            return None
        return self._graph.edges[source, target, scope]["edge"]

    def vertices(self) -> Iterator[DependencyVertex]:
        """Vertices in insertion order."""
        for _, data in self._graph.nodes(data=True):
            yield data["vertex"]

    def edges(self) -> Iterator[DependencyEdge]:
        """Edges grouped by source vertex, in insertion order."""
        for _, _, data in self._graph.edges(data=True):
            yield data["edge"]

    def out_edges(self, name: str) -> Iterator[DependencyEdge]:
        """Edges leaving a vertex, in insertion order."""
        for _, _, data in self._graph.out_edges(name, data=True):
            yield data["edge"]

    @property
    def root(self) -> Optional[DependencyVertex]:
        return self._root

    @property
    def vertex_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def __contains__(self, name: str) -> bool:
        return name in self._graph

    def __len__(self) -> int:
        return self.vertex_count

    def stats(self) -> Dict[str, int]:
        """Counts of vertices and edges, split by ignored status."""
        ignored_vertices = sum(1 for v in self.vertices() if v.ignored)
        ignored_edges = sum(1 for e in self.edges() if e.ignored)
        return {
            "vertices": self.vertex_count,
            "ignored_vertices": ignored_vertices,
            "edges": self.edge_count,
            "ignored_edges": ignored_edges,
        }
