"""depgraph - complete Maven dependency graphs, including what the resolver ignored."""

__version__ = "1.0.0"
