"""Core data models for depgraph."""

from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional


@dataclass
class Dependency:
    """A Maven dependency as declared in a POM (or reported by the resolver)."""

    group_id: str
    artifact_id: str
    version: str
    type: str = "jar"
    classifier: Optional[str] = None
    scope: str = "compile"  # compile, provided, runtime, test, system, import

    def __post_init__(self):
        """Apply Maven defaults for missing type and scope."""
        if not self.type:
            self.type = "jar"
        if not self.scope:
            self.scope = "compile"
        if not self.classifier:
            self.classifier = None

    @property
    def identity(self) -> str:
        """The vertex name: groupId:artifactId:type[:classifier]:version."""
        parts = [self.group_id, self.artifact_id, self.type]
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    @property
    def coordinate_string(self) -> str:
        """The string include patterns are matched against (note the trailing colon)."""
        return f"{self.group_id}:{self.artifact_id}:{self.type}:{self.version}:"

    @property
    def management_key(self) -> str:
        """groupId:artifactId:type[:classifier], the key used by dependencyManagement."""
        return management_key(self.group_id, self.artifact_id, self.type, self.classifier)

    def unique_key(self, scope: Optional[str] = None) -> str:
        """Identity plus scope, used to avoid double dependencies and loops."""
        return f"{self.identity}:{scope or self.scope}"

    def with_scope(self, scope: str) -> 'Dependency':
        """Return a copy of this dependency with another scope."""
        return replace(self, scope=scope)

    def __str__(self) -> str:
        return f"{self.identity} ({self.scope})"


@dataclass
class DependencyNode:
    """A node in the resolved dependency tree, as reported by the resolver."""

    dependency: Dependency
    is_root: bool = False
    children: List['DependencyNode'] = field(default_factory=list, compare=False)

    def __eq__(self, other) -> bool:
        """Equality based on object identity, the same artifact may appear in several places."""
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def add_child(self, child: 'DependencyNode') -> None:
        """Add a child dependency to this node."""
        self.children.append(child)

    def walk(self) -> Iterator['DependencyNode']:
        """Iterate over this node and all its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __str__(self) -> str:
        return self.dependency.identity


def management_key(group_id: str, artifact_id: str, type: str = "jar", classifier: Optional[str] = None) -> str:
    """The key that identifies a dependency within a POM, regardless of its version."""
    key = f"{group_id}:{artifact_id}:{type or 'jar'}"
    if classifier:
        key += f":{classifier}"
    return key


# Classifiers implied by a dependency type, as maven's artifact handlers define them
TYPE_CLASSIFIERS = {
    "test-jar": "tests",
    "ejb-client": "client",
    "java-source": "sources",
    "javadoc": "javadoc",
}


def default_classifier(type: str, classifier: Optional[str] = None) -> Optional[str]:
    """The declared classifier, or the one the type implies when none is declared."""
    return classifier or TYPE_CLASSIFIERS.get(type)
