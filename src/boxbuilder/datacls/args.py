"""
Step Arguments

Values coming out of a Boxfile are heterogeneous (scalars, lists, mappings).
They are normalised here into a small tagged union so that step handlers never
deal with untyped values. Every scalar is turned into a string on the way in.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StrArg(BaseModel):
    kind: Literal["str"] = "str"
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> str:
        return stringify(value)

    def strings(self) -> List[str]:
        return [self.value]


class ListArg(BaseModel):
    kind: Literal["list"] = "list"
    values: List[str] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _coerce(cls, values: Any) -> List[str]:
        return [stringify(v) for v in values]

    def strings(self) -> List[str]:
        return list(self.values)


class MapArg(BaseModel):
    kind: Literal["map"] = "map"
    mapping: Dict[str, str] = Field(default_factory=dict)

    @field_validator("mapping", mode="before")
    @classmethod
    def _coerce(cls, mapping: Any) -> Dict[str, str]:
        return {stringify(k): stringify(v) for k, v in dict(mapping).items()}

    def strings(self) -> List[str]:
        return [f"{key}={value}" for key, value in self.mapping.items()]


StepArg = Annotated[Union[StrArg, ListArg, MapArg], Field(discriminator="kind")]


class Invocation(BaseModel):
    """
        Class represents one step call: its name, positional arguments and
        the optional trailing block of nested steps.
    """
    name: str
    args: List[StepArg] = Field(default_factory=list)
    block: Optional[List["Invocation"]] = None
    location: str = ""

    def __str__(self) -> str:
        where = f" ({self.location})" if self.location else ""
        return f"{self.name}{where}"


Invocation.model_rebuild()


def to_arg(value: Any) -> Union[StrArg, ListArg, MapArg]:
    """Wrap a raw Boxfile value into the matching argument kind."""
    if isinstance(value, dict):
        return MapArg(mapping=value)
    if isinstance(value, (list, tuple)):
        return ListArg(values=list(value))
    return StrArg(value=value)
