"""Base classes for parser backends."""

from abc import ABC, abstractmethod
from typing import Any, Tuple, Type


class InvalidInputError(ValueError):
    """Raised by a backend when the source text is not valid input."""


class Parser(ABC):
    """Contract for the parser whose behaviour generated tests pin down.

    ``parse`` must be deterministic. Only exceptions listed in
    ``invalid_input_errors`` mean "this sample is invalid"; anything else a
    backend raises is treated as a generator fault.
    """

    name: str = ""
    default_extension: str = ""
    invalid_input_errors: Tuple[Type[BaseException], ...] = (InvalidInputError,)

    @abstractmethod
    def parse(self, text: str) -> Any:
        """Return the structured tree for ``text``."""

    def from_snapshot(self, data: Any) -> Any:
        """Rebuild a tree from decoded snapshot JSON for typed comparison."""
        return data
