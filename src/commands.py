from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Type, TypeVar

import discord
from pydantic import BaseModel, ConfigDict, Field, ValidationError

_M = TypeVar("_M", bound=BaseModel)


@dataclass(frozen=True)
class CommandOption:
    name: str
    description: str
    type: int = discord.AppCommandOptionType.string.value
    required: bool = True

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "required": self.required,
        }


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    description: str
    options: tuple[CommandOption, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "type": discord.AppCommandType.chat_input.value,
            "options": [o.to_payload() for o in self.options],
        }


CHAT_COMMAND = CommandDefinition(
    name="chat",
    description="Chat with Avalon.",
    options=(CommandOption(name="query", description="Your question or message"),),
)

SETMODEL_COMMAND = CommandDefinition(
    name="setmodel",
    description="OWNER ONLY",
    options=(CommandOption(name="model_name", description="The model to set"),),
)

COMMANDS: tuple[CommandDefinition, ...] = (CHAT_COMMAND, SETMODEL_COMMAND)


class ChatOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    query: str = Field(min_length=1, max_length=1000)


class SetModelOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    model_name: str = Field(min_length=1, max_length=100)


def flatten_options(options: Optional[Iterable[Any]]) -> dict[str, Any]:
    """Collapse Discord's [{name, type, value}, ...] into {name: value}.

    Entries without a value (subcommand groups) are skipped.
    """
    out: dict[str, Any] = {}
    for opt in options or []:
        if isinstance(opt, BaseModel):
            opt = opt.model_dump(exclude_unset=True)
        if not isinstance(opt, dict) or "value" not in opt or "name" not in opt:
            continue
        out[str(opt["name"])] = opt["value"]
    return out


def _describe(err: dict) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    msg = err.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def validate_options(schema: Type[_M], options: dict[str, Any]) -> tuple[Optional[_M], list[str]]:
    try:
        return schema.model_validate(options), []
    except ValidationError as e:
        return None, [_describe(err) for err in e.errors()]


def payload() -> list[dict]:
    return [c.to_payload() for c in COMMANDS]
