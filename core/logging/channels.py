"""
Logging channel definitions for the Kite gateway.
Every structured event carries a `channel` field so downstream log shipping
can split API traffic, audit trail and database noise.
"""

from enum import Enum


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    DATABASE = "database"        # Database operations
    API = "api"                  # API requests/responses
    AUDIT = "audit"              # Audit trail (logins, logouts, registrations)
    ERROR = "error"              # Error logs
    BROKER = "broker"            # Outbound broker HTTP traffic


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    component_mapping = {
        # Infrastructure components
        "database": LogChannel.DATABASE,
        "instrument_data": LogChannel.DATABASE,

        # API components
        "api": LogChannel.API,

        # Broker handshake
        "auth": LogChannel.BROKER,
        "kite_client": LogChannel.BROKER,

        # Audit
        "audit": LogChannel.AUDIT,
    }

    return component_mapping.get(component, LogChannel.APPLICATION)
