import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import constants
from .datacls import Invocation, to_arg
from .exceptions import (
    BoxfileMissingError,
    BoxfileParsingError,
    BoxfileValidationError,
)


logger = logging.getLogger(__name__)


def cache_disabled() -> bool:
    """Process-wide cache bypass: any non-empty NO_CACHE disables caching."""
    return bool(os.environ.get(constants.NO_CACHE_ENV))


class BoxfileModel(BaseModel):
    """
        Class Config-Validation Model describe top-level of a Boxfile
    """
    tag: Optional[str] = None
    steps: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    model_config = ConfigDict(extra="forbid")

    @field_validator("tag")
    @classmethod
    def check_tag(cls, tag: Optional[str]) -> Optional[str]:
        if tag is not None and (not tag.strip() or any(c.isspace() for c in tag)):
            raise ValueError(f"invalid image tag {tag!r}")
        return tag


def parse_steps(entries: Any, location: str) -> List[Invocation]:
    """
    Turn the raw ``steps`` list into invocations.

    Each entry is a mapping with exactly one step-name key plus an optional
    ``steps`` key holding the nested block.
    """
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise BoxfileValidationError(f"'{location}' must be a list of steps.")

    invocations = []
    for i, entry in enumerate(entries):
        where = f"{location}[{i}]"
        if isinstance(entry, str):
            # bare step name without arguments, e.g. `- cmd`
            entry = {entry: None}
        if not isinstance(entry, dict):
            raise BoxfileValidationError(f"'{where}' must be a mapping like '- run: ls'.")

        names = [key for key in entry if key != constants.BLOCK_KEY]
        if len(names) != 1:
            raise BoxfileValidationError(
                f"'{where}' must name exactly one step, found {names or 'none'}."
            )
        name = str(names[0])
        value = entry[names[0]]

        if value is None:
            args = []
        elif isinstance(value, list):
            args = [to_arg(v) for v in value]
        else:
            args = [to_arg(value)]

        block = None
        if constants.BLOCK_KEY in entry:
            block = parse_steps(entry[constants.BLOCK_KEY], f"{where}.{constants.BLOCK_KEY}")

        invocations.append(Invocation(name=name, args=args, block=block, location=where))
    return invocations


class Boxfile:
    """
    Loads and validates a Boxfile (YAML) into step invocations.
    Relative copy sources are resolved against the Boxfile's directory.
    """
    def __init__(self, path: Union[str, os.PathLike], text: Optional[str] = None):
        self.path = Path(path)
        logger.info(f"Loading Boxfile from '{self.path}'...")
        raw_data = self._load_raw(text)

        try:
            self.model = BoxfileModel.model_validate(raw_data)
        except ValidationError as e:
            raise BoxfileValidationError(f"Boxfile validation failed:\n{e}")

        self.invocations = parse_steps(self.model.steps, constants.BLOCK_KEY)
        logger.debug(f"Boxfile '{self.path}' parsed into {len(self.invocations)} top-level steps.")

    @classmethod
    def from_text(cls, text: str, context: Union[str, os.PathLike] = ".") -> "Boxfile":
        return cls(Path(context) / constants.DEFAULT_BOXFILE, text=text)

    def _load_raw(self, text: Optional[str]) -> Dict[str, Any]:
        try:
            if text is None:
                text = self.path.read_text(encoding="utf-8")
            data = yaml.safe_load(text)
        except FileNotFoundError:
            raise BoxfileMissingError(f"Boxfile not found at: {self.path}")
        except yaml.YAMLError as e:
            raise BoxfileParsingError(f"Error parsing YAML file: {e}")
        if not isinstance(data, dict):
            raise BoxfileParsingError("Boxfile must be a YAML document containing a dictionary.")
        return data

    @property
    def context(self) -> Path:
        return self.path.parent

    @property
    def tag(self) -> Optional[str]:
        return self.model.tag
