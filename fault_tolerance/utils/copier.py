import copy
from typing import Protocol, TypeVar

T = TypeVar("T")


class SupportsCopy(Protocol):
    def copy(self, message: T) -> T: ...


class DeepCopier:
    """Produces structurally independent duplicates with `copy.deepcopy`."""

    def copy(self, message: T) -> T:
        return copy.deepcopy(message)
