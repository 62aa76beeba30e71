"""Self-updating launcher for a remotely hosted bot artifact."""

__version__ = "0.1.0"
