"""Maven dependency scopes and the rule used to inherit them transitively."""

from enum import Enum
from typing import Optional


class Scope(Enum):
    """Maven scopes. The value is the name as written in a POM."""

    ROOT = "root"
    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"

    @classmethod
    def by_name(cls, name: Optional[str]) -> Optional['Scope']:
        """Case-insensitive lookup. Returns None for unknown or missing names."""
        if not name:
            return None
        return cls.__members__.get(name.upper())

    @property
    def color(self) -> str:
        """The DOT color used for this scope (both vertex and edge)."""
        return SCOPE_COLORS[self]

    def __str__(self) -> str:
        return self.value


SCOPE_COLORS = {
    Scope.ROOT: "black",
    Scope.COMPILE: "black",
    Scope.PROVIDED: "green",
    Scope.RUNTIME: "blueviolet",
    Scope.TEST: "blue",
    Scope.SYSTEM: "darkgreen",
    Scope.IMPORT: "cyan",
}


def adjust_scope(declared: Scope, parent: Scope) -> Optional[Scope]:
    """
    Compute the scope of a dependency seen through its parent dependency.

    - compile dependencies, and runtime dependencies of a non-compile parent,
      take the parent's scope
    - test and provided dependencies are not transitive: None is returned and
      the branch must not be followed
    - anything else keeps its declared scope

    Args:
        declared: The scope declared in the parent's POM
        parent: The (already adjusted) scope of the parent dependency

    Returns:
        The effective scope, or None when the dependency is dropped
    """
    if declared is Scope.COMPILE or (declared is Scope.RUNTIME and parent is not Scope.COMPILE):
        return parent
    elif declared is Scope.TEST or declared is Scope.PROVIDED:
        return None
    return declared
