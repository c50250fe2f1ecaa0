"""
Box Builder Build State

This module contains the BuildState data class, the single mutable record a
build threads through every step handler.

``config`` is the live configuration containers are created from. The
canonical ``user``, ``working_dir``, ``cmd`` and ``entrypoint`` fields are what
gets committed into images; scoped overrides and the command of a ``run`` step
only ever touch ``config``.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
from pydantic import BaseModel, Field

from .images import ImageConfig, ImageRecord

logger = logging.getLogger(__name__)

CANONICAL_FIELDS = ("user", "working_dir", "cmd", "entrypoint")


class BuildState(BaseModel):
    base_image: Optional[str] = None
    config: ImageConfig = Field(default_factory=ImageConfig)

    user: str = ""
    working_dir: str = ""
    cmd: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None

    # active scoped overrides, field name -> value
    scopes: Dict[str, str] = Field(default_factory=dict)

    @property
    def image(self) -> Optional[str]:
        return self.config.image

    def reset(self, base_image: str, record: ImageRecord):
        """Start over from a freshly resolved base image (the `from` step)."""
        self.base_image = base_image
        self.adopt(record)

    def set_image(self, image_id: str):
        self.config.image = image_id

    def set_canonical(self, name: str, value: Any):
        """Set a field both in the committed (canonical) and in the live config."""
        setattr(self, name, value)
        if name not in self.scopes:
            setattr(self.config, name, value)

    def commit_config(self) -> ImageConfig:
        """The live config with the canonical fields re-applied over transient ones."""
        return self.config.model_copy(
            update={name: getattr(self, name) for name in CANONICAL_FIELDS},
            deep=True,
        )

    def adopt(self, record: ImageRecord):
        """Take over the configuration of a cached image."""
        self.config = record.config.model_copy(update={"image": record.id, "tty": self.config.tty}, deep=True)
        for name in CANONICAL_FIELDS:
            setattr(self, name, getattr(self.config, name))
        # nested steps keep observing the enclosing scope
        for name, value in self.scopes.items():
            setattr(self.config, name, value)

    @contextmanager
    def scoped(self, name: str, value: str) -> Iterator["BuildState"]:
        """
        Override ``name`` for the duration of a nested block.

        On every exit path the prior value comes back, so the next sibling step
        creates its container from the pre-scope configuration.
        """
        outer = self.scopes.get(name)
        self.scopes[name] = value
        setattr(self.config, name, value)
        logger.debug(f"[State] Entering scope {name}={value!r}")
        try:
            yield self
        finally:
            if outer is None:
                self.scopes.pop(name, None)
                setattr(self.config, name, getattr(self, name))
            else:
                self.scopes[name] = outer
                setattr(self.config, name, outer)
            logger.debug(f"[State] Leaving scope {name}={value!r}")

    @contextmanager
    def transient(self, **fields: Any) -> Iterator["BuildState"]:
        """Change live config fields for a single commit only."""
        previous = {name: getattr(self.config, name) for name in fields}
        for name, value in fields.items():
            setattr(self.config, name, value)
        try:
            yield self
        finally:
            for name, value in previous.items():
                setattr(self.config, name, value)
