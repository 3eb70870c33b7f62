"""Providers of the true dependency tree: the tree maven resolves for a project."""

import logging
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import MetadataLookupError
from .models import Dependency, DependencyNode

logger = logging.getLogger(__name__)

# "[INFO] " and similar log prefixes
LOG_PREFIX_PATTERN = re.compile(r'^\[(INFO|DEBUG|WARNING|WARN|ERROR)\]\s?', re.IGNORECASE)

# Tree markers ("+- ", "\- ", "|  ", "   ") followed by a coordinate and optional annotations
TREE_LINE_PATTERN = re.compile(r'^(?P<prefix>[| +\\-]*?)(?P<coordinate>[^\s:|+\\(]+(?::[^\s:]+){3,5})(?:\s+.*)?$')

INDENT_WIDTH = 3


def _parse_coordinate(coordinate: str, is_root: bool) -> Dependency:
    """
    Parse a dependency:tree coordinate.

    Root:  groupId:artifactId:packaging:version
    Other: groupId:artifactId:type[:classifier]:version:scope
    """
    parts = coordinate.split(':')
    if is_root:
        if len(parts) != 4:
            raise ValueError(f"expected groupId:artifactId:packaging:version, got '{coordinate}'")
        group_id, artifact_id, packaging, version = parts
        return Dependency(group_id=group_id, artifact_id=artifact_id, version=version, type=packaging)

    if len(parts) == 5:
        group_id, artifact_id, dep_type, version, scope = parts
        classifier = None
    elif len(parts) == 6:
        group_id, artifact_id, dep_type, classifier, version, scope = parts
    else:
        raise ValueError(f"expected groupId:artifactId:type[:classifier]:version:scope, got '{coordinate}'")
    return Dependency(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        type=dep_type,
        classifier=classifier,
        scope=scope,
    )


def _tree_lines(text: str) -> List[Tuple[int, str]]:
    """Extract (depth, coordinate) pairs of the first project tree in the text."""
    lines: List[Tuple[int, str]] = []
    for raw_line in text.splitlines():
        line = LOG_PREFIX_PATTERN.sub('', raw_line.rstrip())
        if not line.strip():
            continue

        match = TREE_LINE_PATTERN.match(line)
        if not match:
            continue

        prefix = match.group('prefix')
        if prefix and len(prefix) % INDENT_WIDTH:
            logger.debug(f"Skipping line with unexpected indentation: '{raw_line}'")
            continue
        depth = len(prefix) // INDENT_WIDTH

        if depth == 0 and lines:
            # Next project in a multi-module build
            logger.debug(f"Ignoring further project tree starting at '{match.group('coordinate')}'")
            break
        if depth > 0 and not lines:
            continue
        lines.append((depth, match.group('coordinate')))
    return lines


def parse_dependency_tree(text: str) -> DependencyNode:
    """
    Parse the text output of ``mvn dependency:tree``.

    The log prefixes of console output are stripped; when the output holds
    several projects only the first tree is used.

    Args:
        text: The dependency:tree output

    Returns:
        The root node of the tree

    Raises:
        ValueError: If no tree can be found or the tree is malformed
    """
    lines = _tree_lines(text)
    if not lines:
        raise ValueError("no dependency tree found")

    _, root_coordinate = lines[0]
    root = DependencyNode(dependency=_parse_coordinate(root_coordinate, is_root=True), is_root=True)
    stack: List[DependencyNode] = [root]

    for depth, coordinate in lines[1:]:
        if depth > len(stack):
            raise ValueError(f"unexpected indentation for '{coordinate}'")
        del stack[depth:]
        node = DependencyNode(dependency=_parse_coordinate(coordinate, is_root=False))
        stack[-1].add_child(node)
        stack.append(node)

    logger.info(f"Parsed dependency tree of {root} with {len(lines) - 1} resolved dependencies")
    return root


class DependencyTreeFile:
    """Reads the true dependency tree from a saved ``mvn dependency:tree`` output."""

    def __init__(self, path):
        self.path = Path(path)

    def resolve(self) -> DependencyNode:
        """
        Raises:
            MetadataLookupError: If the file cannot be read or parsed
        """
        logger.info(f"Reading dependency tree from file: {self.path}")
        try:
            text = self.path.read_text()
            return parse_dependency_tree(text)
        except (OSError, ValueError) as e:
            raise MetadataLookupError(self.path, f"unable to read the true dependency tree: {e}") from e


class MavenDependencyTree:
    """Computes the true dependency tree by running ``mvn dependency:tree``."""

    def __init__(self, pom_file, executable: str = "mvn", extra_args: Optional[List[str]] = None):
        self.pom_file = Path(pom_file)
        self.executable = executable
        self.extra_args = extra_args or []

    def command(self, output_file: str) -> List[str]:
        return [
            self.executable, "-B", "-q",
            "-f", str(self.pom_file),
            "dependency:tree",
            f"-DoutputFile={output_file}",
            "-DoutputType=text",
            *self.extra_args,
        ]

    def resolve(self) -> DependencyNode:
        """
        Raises:
            MetadataLookupError: If maven fails or its output cannot be parsed
        """
        fd, output_file = tempfile.mkstemp(prefix="depgraph-", suffix=".txt")
        os.close(fd)
        try:
            cmd = self.command(output_file)
            logger.info(f"Running: {' '.join(cmd)}")
            try:
                result = subprocess.run(cmd, capture_output=True, text=True)
            except OSError as e:
                raise MetadataLookupError(self.pom_file, f"unable to run {self.executable}: {e}") from e
            if result.returncode != 0:
                output = (result.stdout + result.stderr).strip()
                raise MetadataLookupError(
                    self.pom_file,
                    f"unable to create the true dependency graph, {self.executable} exited with "
                    f"{result.returncode}: {output}"
                )
            return DependencyTreeFile(output_file).resolve()
        finally:
            os.unlink(output_file)
