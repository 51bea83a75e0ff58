"""Exceptions raised by the EZCompose package."""


class EzComposeError(Exception):
    """Base class for every error raised by EZCompose."""


class ContentReadError(EzComposeError):
    """Raised when an attachment source cannot be fully read."""


class TokenGenerationError(EzComposeError):
    """Raised when the unique token source fails."""


class EnvelopeError(EzComposeError):
    """Raised when a message cannot be routed by the transport."""


class MissingSenderError(EnvelopeError):
    """Raised when the message has no sender email."""


class NoRecipientsError(EnvelopeError):
    """Raised when the message has no envelope recipients."""


class HeaderInjectionError(EzComposeError, ValueError):
    """Raised when a header value contains a line break."""
