"""
Box Builder Registries

This module contains the registry that maps step names to their handlers.
Handlers are discovered on a dispatcher object through the ``step`` decorator.
"""

from typing import Any, Dict, Generic, Iterable, Optional, TypeVar
import logging

from .exceptions import UnknownStepError
from .protocols import StepHandler

logger = logging.getLogger(__name__)

K = TypeVar('K')
V = TypeVar('V')

STEP_ATTR = "__step_name__"


def step(name: str):
    """Mark a dispatcher method as the handler of step ``name``."""
    def decorator(func):
        setattr(func, STEP_ATTR, name)
        return func
    return decorator


class Registry(Generic[K, V]):
    """
    A generic name -> value registry.
    """

    def __init__(self):
        self._registry: Dict[K, V] = {}
        logger.debug(f"Initialized {self.__class__.__name__}")

    def register(self, key: K, value: V):
        self._registry[key] = value
        logger.debug(f"Registered in {self.__class__.__name__}: {key} -> {getattr(value, '__name__', str(value))}")

    def get(self, key: K) -> Optional[V]:
        return self._registry.get(key)

    def __contains__(self, key: K) -> bool:
        return key in self._registry

    @property
    def registry(self) -> Dict[K, V]:
        return self._registry


class StepRegistry(Registry[str, StepHandler]):
    """
    Registry of build steps. Steps listed in ``omit`` are never registered,
    so invoking them fails exactly like invoking an undefined step.
    """

    def __init__(self, omit: Iterable[str] = ()):
        super().__init__()
        self.omitted = set(omit)

    def register(self, key: str, value: StepHandler):
        if key in self.omitted:
            logger.debug(f"Step '{key}' omitted, not registering")
            return
        super().register(key, value)

    def discover(self, owner: Any) -> "StepRegistry":
        """Register every method of ``owner`` decorated with ``step``."""
        logger.debug(f"Starting step discovery on {owner.__class__.__name__}...")
        for attr in dir(owner):
            member = getattr(owner, attr, None)
            name = getattr(member, STEP_ATTR, None)
            if name and callable(member):
                self.register(name, member)
        logger.debug(f"Step discovery finished. Total steps: {len(self._registry)}")
        return self

    def resolve(self, name: str) -> StepHandler:
        handler = self.get(name)
        if handler is None:
            raise UnknownStepError(f"undefined step '{name}'")
        return handler
