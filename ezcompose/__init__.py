"""EZCompose package initialization module.

This package builds MIME email messages in memory (an HTML body, file
attachments and inline resources referenced by content id) and hands
the serialized bytes to an SMTP relay.

Modules:
    core (module): Message composition, serialization and dispatch.
    utils (module): Validation helpers for configuration and headers.
    exceptions (module): Errors raised by the package.

Example:
    from ezcompose import Address, Message, send

    msg = Message(sender=Address("me@domain.com"), to=[Address("you@domain.com")])
    msg.subject = "Hello!"
    msg.set_html("<p>This is a test email.</p>")
    send("smtp.domain.com:587", ("me@domain.com", "secret"), msg)
"""

from .core import Address, EzSender, Message, new_token, send, smtp_transport
from .exceptions import (
    ContentReadError,
    EnvelopeError,
    EzComposeError,
    HeaderInjectionError,
    MissingSenderError,
    NoRecipientsError,
    TokenGenerationError,
)

__all__ = [
    "Address",
    "EzSender",
    "Message",
    "new_token",
    "send",
    "smtp_transport",
    "ContentReadError",
    "EnvelopeError",
    "EzComposeError",
    "HeaderInjectionError",
    "MissingSenderError",
    "NoRecipientsError",
    "TokenGenerationError",
]
