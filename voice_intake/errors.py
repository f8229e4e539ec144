"""
Exception types raised by the relay.

Fatal errors (TransportFault and its subclasses, CredentialMissing) tear the
session down after exactly one `error` message. DecodeFault and PersistenceFault
are handled locally and never end a call.
"""

from voice_intake.config.constants import (
    ERROR_CONNECTION,
    ERROR_CREDENTIAL_MISSING,
    ERROR_INVALID_MESSAGE,
)


class RelayError(Exception):
    """Base class for relay errors."""

    fatal = False
    client_message = ERROR_CONNECTION


class TransportFault(RelayError):
    """Connection dropped or a frame could not be sent or received."""

    fatal = True


class MalformedMessage(TransportFault):
    """A client or engine message could not be parsed."""

    client_message = ERROR_INVALID_MESSAGE


class CredentialMissing(RelayError):
    """The selected streaming engine has no credential configured."""

    fatal = True
    client_message = ERROR_CREDENTIAL_MISSING


class DecodeFault(RelayError):
    """A single audio chunk was corrupt and has been dropped."""


class PersistenceFault(RelayError):
    """A record could not be written to storage."""


class InvalidStateTransition(RelayError):
    """A session attempted a transition that is not an edge of the state machine."""
