"""Configuration for the gateway client."""

from .settings import DEFAULT_INTENTS, GatewaySettings, get_settings

__all__ = ["DEFAULT_INTENTS", "GatewaySettings", "get_settings"]
