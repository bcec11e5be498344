"""agentsync - Multi-platform agent artifact builds and CI monitor decisions."""

__version__ = "0.1.0"
