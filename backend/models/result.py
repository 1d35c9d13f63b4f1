"""
Tagged result type for domain validation.

Domain constructors and policies return `Ok(value)` or `Err(kind, message)`
instead of raising; use cases convert `Err` into application errors at the edge.
"""
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""
    value: T = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed result carrying an error kind and message."""
    kind: str
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[Any], Err]
