"""gwgraph: Gateway API resource graph and effective policy resolution."""

__version__ = "0.1.0"
