"""Collects the complete dependency graph of a Maven project and exports it."""

import logging
import sys
from pathlib import Path
from typing import Optional

from .errors import RenderError
from .filters import parse_includes
from .formatters import OutputFormatter
from .graph import DependencyGraph
from .graph_builder import DependencyGraphBuilder
from .pom import PomDependencyLookup
from .repository import MAVEN_CENTRAL_URL, MavenRepository, default_local_repository
from .tree_providers import DependencyTreeFile, MavenDependencyTree

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_NAME = "depgraph.gv"
BUILD_DIRECTORY = "target"


def default_output_file(pom_file) -> Path:
    """depgraph.gv in the build directory of the project."""
    return Path(pom_file).resolve().parent / BUILD_DIRECTORY / DEFAULT_OUTPUT_NAME


class DepGraphCollector:
    """
    Collects the complete dependency graph of a project.

    The true dependency tree comes from a saved ``mvn dependency:tree``
    output, or from running maven. The declared dependencies come from the
    effective POMs, read from the local repository or downloaded.
    """

    def __init__(self, pom_file="pom.xml", output_file=None, includes: Optional[str] = None,
                 tree_file=None, mvn_executable: str = "mvn", output_format: str = "dot",
                 repository_url: str = MAVEN_CENTRAL_URL, local_repository=None):
        """
        Initialize the collector.

        Args:
            pom_file: The project POM
            output_file: Where to write the graph, '-' for stdout. Defaults to target/depgraph.gv
            includes: Comma-separated include patterns, None to include everything
            tree_file: Saved dependency:tree output, None to run maven
            mvn_executable: Maven executable used when no tree file is given
            output_format: One of 'dot', 'tree' or 'sbom'
            repository_url: Remote repository to download POMs from
            local_repository: Local repository to read POMs from, defaults to ~/.m2/repository
        """
        self.pom_file = Path(pom_file)
        self.output_file = output_file if output_file is not None else default_output_file(pom_file)
        self.includes = includes
        self.tree_file = tree_file
        self.mvn_executable = mvn_executable
        self.output_format = output_format
        self.repository_url = repository_url
        self.local_repository = local_repository if local_repository is not None else default_local_repository()

    def tree_provider(self):
        if self.tree_file is not None:
            return DependencyTreeFile(self.tree_file)
        return MavenDependencyTree(self.pom_file, executable=self.mvn_executable)

    def execute(self) -> DependencyGraph:
        """
        Build the graph and export it.

        Raises:
            DepGraphError: If the filters, either pass or the export fail. Nothing
                is written in that case.
        """
        filters = parse_includes(self.includes)
        resolved_tree = self.tree_provider().resolve()

        with MavenRepository(self.repository_url, self.local_repository) as repository:
            lookup = PomDependencyLookup(repository)
            project = lookup.get_project(self.pom_file)
            if project.artifact.identity != resolved_tree.dependency.identity:
                logger.warning(
                    f"Dependency tree is for {resolved_tree.dependency.identity}, "
                    f"but {self.pom_file} builds {project.artifact.identity}"
                )
            builder = DependencyGraphBuilder(lookup, filters)
            graph = builder.build(resolved_tree, project.dependencies)

        self.export(graph)
        return graph

    def export(self, graph: DependencyGraph) -> None:
        """Write the graph in the configured format."""
        output = OutputFormatter.format(graph, self.output_format)

        if str(self.output_file) == '-':
            sys.stdout.write(output)
            return

        path = Path(self.output_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(output)
        except OSError as e:
            raise RenderError(path, str(e)) from e
        logger.info(f"Output written to: {path}")
