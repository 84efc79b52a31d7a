from .gateway import (
    GatewayEnvelope,
    HelloPayload,
    IdentifyPayload,
    IdentifyProperties,
    PresencePayload,
    ReadyPayload,
    ResumePayload,
)
from .interaction import (
    ApplicationCommandEvent,
    BooleanOption,
    ChannelOption,
    CommandData,
    IntegerOption,
    InteractionType,
    MentionableOption,
    NumberOption,
    OptionValue,
    RoleOption,
    StringOption,
    SubCommandGroupOption,
    SubCommandOption,
    UserOption,
)

__all__ = [
    "GatewayEnvelope",
    "HelloPayload",
    "IdentifyPayload",
    "IdentifyProperties",
    "PresencePayload",
    "ReadyPayload",
    "ResumePayload",
    "ApplicationCommandEvent",
    "BooleanOption",
    "ChannelOption",
    "CommandData",
    "IntegerOption",
    "InteractionType",
    "MentionableOption",
    "NumberOption",
    "OptionValue",
    "RoleOption",
    "StringOption",
    "SubCommandGroupOption",
    "SubCommandOption",
    "UserOption",
]
