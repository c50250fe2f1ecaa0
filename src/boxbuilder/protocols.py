"""
Box Builder Protocol Definitions

This module contains the callable shapes passed between the dispatcher, the
commit protocol and the step hooks.

Protocols are the foundation layer with no dependencies on other boxbuilder
modules besides the data classes.
"""

from typing import List, Optional, Protocol, runtime_checkable

from .datacls import BuildState, StepArg


@runtime_checkable
class StepHook(Protocol):
    """
    Applies a step's effect inside an ephemeral container.

    Returns a refined cache key (e.g. a content hash) or None to keep the
    key the step was committed with.
    """

    def __call__(self, container_id: str) -> Optional[str]:
        ...


@runtime_checkable
class Block(Protocol):
    """Evaluates the nested steps of a scoped step."""

    def __call__(self) -> None:
        ...


@runtime_checkable
class StepHandler(Protocol):
    """
    A named build step. Failures are raised as BoxBuilderError subclasses
    whose message is meant for the user.
    """

    def __call__(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None) -> None:
        ...
