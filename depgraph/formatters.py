"""Output formatters for the dependency graph."""

import json
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from packageurl import PackageURL
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType, ComponentScope
from cyclonedx.output.json import JsonV1Dot6

from .graph import DependencyEdge, DependencyGraph, DependencyVertex
from .scope import Scope

logger = logging.getLogger(__name__)

DOT_ID_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

OUTPUT_FORMATS = ('dot', 'tree', 'sbom')


class OutputFormatter:
    """Formatter for the supported output formats."""

    @staticmethod
    def format(graph: DependencyGraph, output_format: str = 'dot') -> str:
        """Format the graph in one of OUTPUT_FORMATS."""
        if output_format == 'dot':
            return OutputFormatter.format_as_dot(graph)
        elif output_format == 'tree':
            return OutputFormatter.format_as_tree(graph)
        elif output_format == 'sbom':
            return OutputFormatter.format_as_sbom(graph)
        raise ValueError(f"Unknown output format: {output_format}")

    @staticmethod
    def format_as_dot(graph: DependencyGraph) -> str:
        """
        Format as a DOT (.gv) directed graph.

        Vertices get integer ids in insertion order and are labelled with the
        artifact name, so names never need to be valid DOT identifiers.
        """
        lines = ["digraph G {"]

        vertex_ids: Dict[str, int] = {}
        for index, vertex in enumerate(graph.vertices(), 1):
            vertex_ids[vertex.name] = index
            attributes = {"label": vertex.name}
            attributes.update(vertex.attributes)
            lines.append(f'  "{index}" [{OutputFormatter._format_dot_attributes(attributes)}];')

        for edge in graph.edges():
            lines.append(
                f'  "{vertex_ids[edge.source]}" -> "{vertex_ids[edge.target]}" '
                f'[{OutputFormatter._format_dot_attributes(edge.attributes)}];'
            )

        lines.append("}")
        return '\n'.join(lines) + '\n'

    @staticmethod
    def _format_dot_attributes(attributes: Dict[str, str]) -> str:
        return ", ".join(f"{key}={OutputFormatter._dot_value(value)}" for key, value in attributes.items())

    @staticmethod
    def _dot_value(value: str) -> str:
        """Quote a DOT attribute value unless it is a plain identifier."""
        if DOT_ID_PATTERN.match(value):
            return value
        escaped = value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'

    @staticmethod
    def format_as_tree(graph: DependencyGraph) -> str:
        """
        Format as a Maven dependency:tree like listing of the complete graph.

        Every edge is a line, annotated with its scope and ignored status.
        The dependencies of a vertex are listed under its first occurrence
        only, later occurrences are marked as seen.
        """
        root = graph.root
        if root is None:
            return ''

        lines = [root.name]
        expanded: Set[str] = {root.name}
        edges = list(graph.out_edges(root.name))
        for i, edge in enumerate(edges):
            lines.extend(OutputFormatter._format_tree_edge(graph, edge, "", i == len(edges) - 1, expanded))
        return '\n'.join(lines) + '\n'

    @staticmethod
    def _format_tree_edge(graph: DependencyGraph, edge: DependencyEdge, prefix: str, is_last: bool,
                          expanded: Set[str]) -> List[str]:
        """Format a single edge (and the subtree of its target) in Maven tree style."""
        annotations = [str(edge.scope)]
        if edge.ignored:
            annotations.append("ignored")
        children = list(graph.out_edges(edge.target))
        seen = edge.target in expanded
        if seen and children:
            annotations.append("seen")

        connector = "\\- " if is_last else "+- "
        lines = [f"{prefix}{connector}{edge.target} ({', '.join(annotations)})"]
        if seen:
            return lines
        expanded.add(edge.target)

        child_prefix = prefix + ("   " if is_last else "|  ")
        for i, child in enumerate(children):
            lines.extend(OutputFormatter._format_tree_edge(graph, child, child_prefix, i == len(children) - 1, expanded))
        return lines

    @staticmethod
    def format_as_sbom(graph: DependencyGraph) -> str:
        """
        Generate a CycloneDX SBOM in JSON format.

        Every vertex becomes a component; ignored vertices are tagged and
        scoped as excluded. The dependencies section only holds the
        relations maven actually used.
        """
        from . import __version__

        bom = Bom()

        tool_component = Component(
            name="depgraph",
            version=__version__,
            type=ComponentType.APPLICATION,
            bom_ref=f"depgraph@{__version__}",
        )
        bom.metadata.tools.components.add(tool_component)

        purls: Dict[str, str] = {}
        for vertex in graph.vertices():
            component = OutputFormatter._vertex_to_component(vertex)
            purls[vertex.name] = str(component.bom_ref.value)
            bom.components.add(component)
        logger.debug(f"Generating SBOM with {len(purls)} components")

        outputter = JsonV1Dot6(bom)
        sbom = json.loads(outputter.output_as_string())

        # Add dependencies manually: only the relations of the true tree
        dependencies = []
        for vertex in graph.vertices():
            depends_on = sorted({
                purls[edge.target] for edge in graph.out_edges(vertex.name) if not edge.ignored
            })
            dependencies.append({"ref": purls[vertex.name], "dependsOn": depends_on})
        dependencies.sort(key=lambda d: d['ref'])
        sbom['dependencies'] = dependencies

        # Sort components alphabetically by purl for consistent ordering
        sbom['components'] = sorted(sbom.get('components', []), key=lambda c: c.get('purl', ''))

        return json.dumps(sbom, indent=2)

    @staticmethod
    def _vertex_to_component(vertex: DependencyVertex) -> Component:
        """Convert a vertex to a CycloneDX Component."""
        group_id, artifact_id, dep_type, classifier, version = OutputFormatter._split_name(vertex.name)

        purl_str = OutputFormatter._build_purl(group_id, artifact_id, dep_type, classifier, version)

        tags = [f"scope:{vertex.primary_scope}"]
        if vertex.ignored:
            tags.append("ignored")

        component = Component(
            name=artifact_id,
            version=version,
            type=ComponentType.APPLICATION if vertex.primary_scope is Scope.ROOT else ComponentType.LIBRARY,
            group=group_id,
            purl=PackageURL.from_string(purl_str),
            bom_ref=purl_str,
            tags=tags
        )
        component.scope = OutputFormatter._scope_to_cyclonedx(vertex.primary_scope, vertex.ignored)
        return component

    @staticmethod
    def _scope_to_cyclonedx(scope: Scope, ignored: bool) -> ComponentScope:
        """
        Map a vertex scope to CycloneDX ComponentScope.

          root, compile, runtime -> REQUIRED (needed at runtime)
          test, provided, system, import, and anything ignored -> EXCLUDED
        """
        if ignored:
            return ComponentScope.EXCLUDED
        if scope in (Scope.ROOT, Scope.COMPILE, Scope.RUNTIME):
            return ComponentScope.REQUIRED
        return ComponentScope.EXCLUDED

    @staticmethod
    def _split_name(name: str) -> Tuple[str, str, str, Optional[str], str]:
        """Split groupId:artifactId:type[:classifier]:version."""
        parts = name.split(':')
        if len(parts) == 5:
            return parts[0], parts[1], parts[2], parts[3], parts[4]
        if len(parts) == 4:
            return parts[0], parts[1], parts[2], None, parts[3]
        raise ValueError(f"Not an artifact name: {name}")

    @staticmethod
    def _build_purl(group_id: str, artifact_id: str, dep_type: str, classifier: Optional[str], version: str) -> str:
        """Build a Package URL (purl) string for a maven artifact."""
        qualifiers = {}
        if classifier:
            qualifiers['classifier'] = classifier
        if dep_type != 'jar':
            qualifiers['type'] = dep_type
        purl = PackageURL(
            type='maven',
            namespace=group_id,
            name=artifact_id,
            version=version,
            qualifiers=qualifiers or None,
        )
        return purl.to_string()
