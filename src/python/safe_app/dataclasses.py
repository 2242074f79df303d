# safe_app/dataclasses.py
"""
Dataclasses for structured data within the safe_app library.
"""
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence


@dataclass(frozen=True, slots=True)
class AppInfo:
    """Identity of the application opening a session."""
    id: str
    name: str
    vendor: str
    scope: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """Mutation counters of the account behind a session."""
    mutations_done: int
    mutations_available: int


@dataclass(frozen=True, slots=True)
class NameAndTag:
    """Network address of a mutable data object."""
    name: bytes
    type_tag: int


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """An immutable `{code, message}` pair describing a failure."""
    code: int
    message: str


@dataclass(frozen=True, slots=True)
class TransformSpec:
    """
    Declarative conversion attached to one native function.

    Attributes:
        input: Optional mapper from the caller's arguments to the host-level
               arguments of the native function. Must return a sequence.
        output: Optional mapper applied to the decoded callback values.
        handle_type: If set, the call's first argument is the owning `App`
                     and the result is wrapped in this handle type.
    """
    input: Optional[Callable[..., Sequence[Any]]] = None
    output: Optional[Callable[..., Any]] = None
    handle_type: Optional[type] = None
