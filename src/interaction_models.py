from __future__ import annotations

from typing import Any, Optional

import discord
from pydantic import BaseModel, ConfigDict


class _Envelope(BaseModel):
    # Discord adds fields over time; only the ones routed on are declared
    model_config = ConfigDict(extra="ignore")


class User(_Envelope):
    id: str
    username: Optional[str] = None


class Member(_Envelope):
    user: Optional[User] = None


class CommandOptionValue(_Envelope):
    name: str
    type: Optional[int] = None
    value: Any = None


class CommandData(_Envelope):
    id: Optional[str] = None
    name: str = ""
    type: Optional[int] = None
    options: Optional[list[CommandOptionValue]] = None


class Interaction(_Envelope):
    id: Optional[str] = None
    application_id: Optional[str] = None
    type: int
    token: str = ""
    data: Optional[CommandData] = None
    member: Optional[Member] = None
    user: Optional[User] = None

    @property
    def is_ping(self) -> bool:
        return self.type == discord.InteractionType.ping.value

    @property
    def is_application_command(self) -> bool:
        return self.type == discord.InteractionType.application_command.value

    @property
    def is_chat_input(self) -> bool:
        return (
            self.is_application_command
            and self.data is not None
            and self.data.type == discord.AppCommandType.chat_input.value
        )

    @property
    def command_name(self) -> str:
        return (self.data.name if self.data else "").lower()

    @property
    def caller_id(self) -> Optional[str]:
        """Guild invocations carry member.user, DMs carry user."""
        if self.member is not None and self.member.user is not None:
            return self.member.user.id
        if self.user is not None:
            return self.user.id
        return None

    def raw_options(self) -> Optional[list[dict]]:
        if self.data is None or self.data.options is None:
            return None
        return [o.model_dump(exclude_unset=True) for o in self.data.options]
