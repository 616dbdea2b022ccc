"""Generate snapshot-based parser tests from a tree of sample files."""

from .errors import GenerationError
from .orchestrator import Orchestrator

__version__ = "0.1.0"

__all__ = ["GenerationError", "Orchestrator", "__version__"]
