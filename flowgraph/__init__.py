"""flowgraph: graph mutation & layout engine for visual project pipelines."""

__version__ = "0.1.0"
