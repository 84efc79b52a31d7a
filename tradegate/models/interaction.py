"""Application command interaction models.

Command options arrive as a list of ``{"name", "type", "value"}`` objects
whose ``value`` type depends on ``type``. Each option kind gets its own model
and the union is discriminated on the wire ``type`` so handlers can match on
the class instead of inspecting Python runtime types of ``value``.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr


class InteractionType(enum.IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class SubCommandOption(BaseModel):
    type: Literal[1] = 1
    name: str
    options: List["OptionValue"] = Field(default_factory=list)


class SubCommandGroupOption(BaseModel):
    type: Literal[2] = 2
    name: str
    options: List["OptionValue"] = Field(default_factory=list)


class StringOption(BaseModel):
    type: Literal[3] = 3
    name: str
    value: StrictStr
    focused: bool = False


class IntegerOption(BaseModel):
    type: Literal[4] = 4
    name: str
    value: StrictInt
    focused: bool = False


class BooleanOption(BaseModel):
    type: Literal[5] = 5
    name: str
    value: StrictBool


class UserOption(BaseModel):
    type: Literal[6] = 6
    name: str
    value: StrictStr


class ChannelOption(BaseModel):
    type: Literal[7] = 7
    name: str
    value: StrictStr


class RoleOption(BaseModel):
    type: Literal[8] = 8
    name: str
    value: StrictStr


class MentionableOption(BaseModel):
    type: Literal[9] = 9
    name: str
    value: StrictStr


class NumberOption(BaseModel):
    type: Literal[10] = 10
    name: str
    value: float
    focused: bool = False


OptionValue = Annotated[
    Union[
        SubCommandOption,
        SubCommandGroupOption,
        StringOption,
        IntegerOption,
        BooleanOption,
        UserOption,
        ChannelOption,
        RoleOption,
        MentionableOption,
        NumberOption,
    ],
    Field(discriminator="type"),
]

SubCommandOption.model_rebuild()
SubCommandGroupOption.model_rebuild()


class CommandData(BaseModel):
    id: Optional[str] = None
    name: str
    type: int = 1
    options: List[OptionValue] = Field(default_factory=list)


class ApplicationCommandEvent(BaseModel):
    """An ``INTERACTION_CREATE`` dispatch carrying an application command."""

    id: str
    token: str
    application_id: str
    type: StrictInt
    data: CommandData
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    member: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None
    locale: Optional[str] = None

    @classmethod
    def is_application_command(cls, payload: Any) -> bool:
        return isinstance(payload, dict) and payload.get("type") == InteractionType.APPLICATION_COMMAND

    @property
    def command_name(self) -> str:
        return self.data.name

    @property
    def user_id(self) -> Optional[str]:
        if self.member and isinstance(self.member.get("user"), dict):
            return self.member["user"].get("id")
        if self.user:
            return self.user.get("id")
        return None

    def subcommand_path(self) -> List[str]:
        """Names of the selected sub-command group/sub-command, outermost first."""

        path: List[str] = []
        options = self.data.options
        while len(options) == 1 and isinstance(options[0], (SubCommandOption, SubCommandGroupOption)):
            path.append(options[0].name)
            options = options[0].options
        return path

    def options(self) -> Dict[str, OptionValue]:
        """Leaf options keyed by name, with sub-command nesting flattened."""

        flat: Dict[str, OptionValue] = {}
        pending = list(self.data.options)
        while pending:
            option = pending.pop(0)
            if isinstance(option, (SubCommandOption, SubCommandGroupOption)):
                pending.extend(option.options)
                continue
            flat[option.name] = option
        return flat
