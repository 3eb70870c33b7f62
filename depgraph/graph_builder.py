"""Builds the complete dependency graph using a two-pass approach."""

import logging
from collections import deque
from typing import Deque, List, Optional, Sequence, Set

from .filters import IncludesFilter, is_included
from .graph import DependencyGraph, DependencyVertex
from .models import Dependency, DependencyNode
from .scope import Scope, adjust_scope

logger = logging.getLogger(__name__)


class DependencyGraphBuilder:
    """
    Builds the complete dependency graph of a project using a two-pass approach:

    Pass 1: Add the true dependency tree
    - Walk the tree maven resolved (what dependency:tree reports)
    - Every node becomes a vertex, every parent/child relation an edge
    - Nothing added in this pass is marked ignored

    Pass 2: Add the ignored dependencies
    - Start from the dependencies the project itself declares
    - Breadth first, fetch the dependencies each dependency declares in its own POM
    - Adjust their scope the way maven would when inheriting it transitively
    - Everything found this way is added as ignored; vertices and edges that
      pass 1 already added keep their true attributes

    The lookup collaborator must provide ``get_dependencies(dependency)``,
    returning the dependencies declared by that dependency, and raise
    MetadataLookupError when they cannot be obtained.
    """

    def __init__(self, lookup, filters: Optional[Sequence[IncludesFilter]] = None):
        """
        Initialize the builder.

        Args:
            lookup: Raw-dependency lookup (see class docstring)
            filters: Include filters, None to include everything
        """
        self.lookup = lookup
        self.filters = filters
        self.graph = DependencyGraph()

    def build(self, resolved_tree: DependencyNode, project_dependencies: List[Dependency]) -> DependencyGraph:
        """
        Run both passes.

        Args:
            resolved_tree: Root of the dependency tree maven resolved for the project
            project_dependencies: The dependencies declared by the project itself

        Returns:
            The complete graph
        """
        logger.info("PASS 1: Adding the true dependency tree")
        self.add_true_dependency_tree(resolved_tree)
        logger.info(f"True dependency tree has {self.graph.vertex_count} vertices and {self.graph.edge_count} edges")

        logger.info("PASS 2: Adding ignored dependencies")
        self.add_ignored_dependencies(project_dependencies)

        stats = self.graph.stats()
        logger.info(
            f"Complete graph has {stats['vertices']} vertices ({stats['ignored_vertices']} ignored) "
            f"and {stats['edges']} edges ({stats['ignored_edges']} ignored)"
        )
        return self.graph

    def _is_included(self, dependency: Dependency) -> bool:
        return is_included(self.filters, dependency)

    # Pass 1

    def add_true_dependency_tree(self, root: DependencyNode) -> None:
        """
        Add the resolved dependency tree to the graph.

        The root becomes the single ROOT vertex. Nodes excluded by the filters
        (or with an unknown scope) are left out, their children are attached
        to the nearest included ancestor instead.
        """
        root_vertex = DependencyVertex(root.dependency.identity, Scope.ROOT)
        self.graph.add_vertex(root_vertex)
        visited: Set[int] = {id(root)}
        for child in root.children:
            self._add_tree_node(child, root_vertex, visited)

    def _add_tree_node(self, node: DependencyNode, parent_vertex: DependencyVertex, visited: Set[int]) -> None:
        if id(node) in visited:
            return
        visited.add(id(node))

        dependency = node.dependency
        scope = _declared_scope(dependency)
        vertex = parent_vertex
        if scope is None:
            logger.warning(f"Skipping {dependency.identity}: unknown scope '{dependency.scope}'")
        elif self._is_included(dependency):
            vertex = DependencyVertex(dependency.identity, scope)
            self.graph.add_vertex(vertex)
            self.graph.add_edge(parent_vertex.name, vertex.name, scope)
            self._output(parent_vertex.name, dependency.identity, scope)

        for child in node.children:
            self._add_tree_node(child, vertex, visited)

    # Pass 2

    def add_ignored_dependencies(self, project_dependencies: List[Dependency]) -> None:
        """
        Add the ignored dependencies to the graph.

        This is done by collecting all direct dependencies of the project and
        then collecting all their declared dependencies transitively. Every
        (artifact, scope) pair is expanded at most once, which also breaks cycles.

        Raises:
            MetadataLookupError: When the declared dependencies of any included
                dependency cannot be obtained
        """
        root = self.graph.root
        if root is None:
            raise ValueError("The true dependency tree must be added before the ignored dependencies")

        unique_dependencies: Set[str] = set()
        queue: Deque[Dependency] = deque()

        for dependency in project_dependencies:
            if not self._is_included(dependency):
                continue
            scope = _declared_scope(dependency)
            if scope is None:
                logger.warning(f"Skipping {dependency.identity} declared by {root.name}: unknown scope '{dependency.scope}'")
                continue
            dependency = dependency.with_scope(scope.value)
            self._output(root.name, dependency.identity, scope)
            self._add_ignored(root.name, dependency, scope)
            self._enqueue(dependency, unique_dependencies, queue)

        expanded = 0
        while queue:
            parent = queue.popleft()
            parent_scope = Scope.by_name(parent.scope)
            expanded += 1
            for declared in self.lookup.get_dependencies(parent):
                if not self._is_included(declared):
                    continue
                declared_scope = _declared_scope(declared)
                if declared_scope is None:
                    logger.warning(f"Skipping {declared.identity} declared by {parent.identity}: unknown scope '{declared.scope}'")
                    continue
                effective_scope = adjust_scope(declared_scope, parent_scope)
                if effective_scope is None:
                    continue
                dependency = declared.with_scope(effective_scope.value)
                self._output(parent.identity, dependency.identity, effective_scope)
                self._add_ignored(parent.identity, dependency, effective_scope)
                self._enqueue(dependency, unique_dependencies, queue)

        logger.info(f"Expanded {expanded} declared dependencies")

    def _enqueue(self, dependency: Dependency, unique_dependencies: Set[str], queue: Deque[Dependency]) -> None:
        key = dependency.unique_key()
        if key not in unique_dependencies:
            unique_dependencies.add(key)
            queue.append(dependency)

    def _add_ignored(self, source: str, dependency: Dependency, scope: Scope) -> None:
        """Add the dependency as an ignored vertex (if new) and an ignored edge (if new)."""
        self.graph.add_vertex(DependencyVertex(dependency.identity, scope, ignored=True))
        self.graph.add_edge(source, dependency.identity, scope, ignored=True)

    def _output(self, source: str, target: str, scope: Scope) -> None:
        """Log a relationship for debug purposes."""
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{source} -> {target} ({scope})")


def _declared_scope(dependency: Dependency) -> Optional[Scope]:
    """The scope of a declared dependency, None if it is not a valid maven scope."""
    scope = Scope.by_name(dependency.scope)
    if scope is Scope.ROOT:
        return None
    return scope
