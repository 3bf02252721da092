"""
Data models for NUT (Network UPS Tools) integration.

This module defines the Pydantic models for the structured data parsed out
of NUT responses: typed variable values, variables, device commands and
session metrics.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ValueKind(str, Enum):
    """Semantic type inferred from a variable's raw value."""

    BOOLEAN = "BOOLEAN"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT_64"
    STRING = "STRING"


class BooleanValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["BOOLEAN"] = "BOOLEAN"
    value: bool


class IntegerValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["INTEGER"] = "INTEGER"
    value: int


class FloatValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["FLOAT_64"] = "FLOAT_64"
    value: float


class StringValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["STRING"] = "STRING"
    value: str


VariableValue = Annotated[
    Union[BooleanValue, IntegerValue, FloatValue, StringValue],
    Field(discriminator="kind"),
]


class TypeInfo(NamedTuple):
    """Parsed ``GET TYPE`` reply."""

    type: str
    writeable: bool
    maximum_length: int


class Variable(BaseModel):
    """
    A single variable of a UPS.

    ``value`` carries the inferred kind; ``original_type`` keeps the type
    token the server reported, whatever was inferred from the value.
    """

    name: str
    value: VariableValue
    description: str = ""
    writeable: bool = False
    maximum_length: int = 0
    original_type: str = ""

    @property
    def type(self) -> ValueKind:
        return ValueKind(self.value.kind)

    @property
    def python_value(self) -> Union[bool, int, float, str]:
        return self.value.value


class Command(BaseModel):
    """An instant command exposed by a UPS."""

    name: str
    description: str = ""


class SessionMetrics(BaseModel):
    """Counters for one session's connection."""

    commands_sent: int = 0
    commands_failed: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    reconnects: int = 0
    last_command_time: Optional[datetime] = None
