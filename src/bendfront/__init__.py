"""bendfront: dual-syntax front-end producing Core IR for a graph-reduction backend."""

__version__ = "0.1.0"
