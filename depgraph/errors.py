"""Exceptions raised by depgraph."""


class DepGraphError(Exception):
    """Base class for all depgraph failures. A run that raises one of these writes no graph."""


class FilterSyntaxError(DepGraphError):
    """An include pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid include pattern '{pattern}': {reason}")


class MetadataLookupError(DepGraphError):
    """The declared or resolved dependencies of a component could not be obtained."""

    def __init__(self, component, reason: str):
        self.component = str(component)
        self.reason = reason
        super().__init__(f"Unable to obtain dependencies of {self.component}: {reason}")


class RenderError(DepGraphError):
    """The graph could not be serialized or written."""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Problem exporting to file {self.path}: {reason}")
