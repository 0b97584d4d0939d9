"""sesh: discover, preview and control GNU Screen sessions."""

__version__ = "0.1.0"

from .core.orchestrator import Orchestrator

__all__ = ["Orchestrator", "__version__"]
