import logging
from base64 import b64encode
from dataclasses import dataclass, field
from os.path import basename
from smtplib import SMTP, SMTP_SSL
from types import MappingProxyType
from typing import BinaryIO, Callable, Mapping
from uuid import uuid4

from jinja2 import Template  # type: ignore

from .exceptions import (
    ContentReadError,
    MissingSenderError,
    NoRecipientsError,
    TokenGenerationError,
)
from .utils import (
    validate_header_value,
    validate_path,
    validate_protocol_config,
    validate_sender,
    validate_template,
)

logger = logging.getLogger(__name__)

Transport = Callable[[object, object, str, list, bytes], object]


def new_token() -> str:
    """Returns a fresh random UUID string."""
    return str(uuid4())


def _read_all(source: BinaryIO, name: str) -> bytes:
    try:
        data = source.read()
    except OSError as e:
        raise ContentReadError(f"Failed to read content for {name!r}: {e}") from e
    return data if data is not None else b""


@dataclass
class Address:
    """A mailbox: an email address with an optional display name."""

    email: str
    name: str = ""

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.email}>"
        return self.email


@dataclass
class Message:
    """An email message built in memory and serialized to MIME bytes.

    The HTML body is a readable binary stream. Attachments and inline
    resources are added through `attach` and `inline_attach`, which drain
    their sources completely.

    Example:
        msg = Message(
            sender=Address("me@domain.com", "Me"),
            to=[Address("user@domain.com")],
            subject="Report",
        )
        cid = msg.inline_attach("logo.png", open("logo.png", "rb"))
        msg.set_html(f'<img src="cid:{cid}"><p>See attached.</p>')
        msg.attach("report.pdf", open("report.pdf", "rb"))
        raw = msg.serialize()
    """

    sender: Address = field(default_factory=lambda: Address(""))
    to: list[Address] = field(default_factory=list)
    cc: list[Address] = field(default_factory=list)
    bcc: list[Address] = field(default_factory=list)
    subject: str = ""
    body: BinaryIO | None = None
    token_factory: Callable[[], str] = field(default=new_token, repr=False)

    def __post_init__(self):
        self._attachments: dict[str, bytes] | None = None
        self._inlines: dict[str, tuple[bytes, str]] | None = None
        self._body_source: BinaryIO | None = None
        self._body_bytes: bytes | None = None
        self._html: bytes | None = None

    @property
    def attachments(self) -> Mapping[str, bytes]:
        """Read-only view of the attachments, keyed by file name."""
        return MappingProxyType(self._attachments or {})

    @property
    def inlines(self) -> Mapping[str, tuple[bytes, str]]:
        """Read-only view of the inline resources: name -> (content, content id)."""
        return MappingProxyType(self._inlines or {})

    @property
    def recipients(self) -> list[str]:
        """Envelope recipients: every non-empty To, then Cc, then Bcc email, in order."""
        return [address.email for address in (*self.to, *self.cc, *self.bcc) if address.email]

    def _new_token(self) -> str:
        try:
            token = self.token_factory()
        except Exception as e:
            raise TokenGenerationError(f"Failed to generate a unique token: {e}") from e
        if not isinstance(token, str) or not token:
            raise TokenGenerationError(f"Token factory returned an invalid token: {token!r}")
        if not token.isascii():
            raise TokenGenerationError(f"Token factory returned a non-ASCII token: {token!r}")
        return token

    def attach(self, name: str, source: BinaryIO) -> None:
        """Reads `source` to the end and stores it as an attachment.

        An existing attachment with the same name is replaced.

        Args:
            name (str): File name shown to the recipient.
            source (BinaryIO): Readable binary stream. It is consumed.

        Raises:
            ContentReadError: If the stream cannot be read. Nothing is stored.

        Example:
            with open("report.pdf", "rb") as f:
                msg.attach("report.pdf", f)
        """
        data = _read_all(source, name)
        if self._attachments is None:
            self._attachments = {}
        self._attachments[name] = data
        logger.debug(f"Attached {name!r} ({len(data)} bytes)")

    def inline_attach(self, name: str, source: BinaryIO) -> str:
        """Reads `source` to the end and stores it as an inline resource.

        Args:
            name (str): File name of the resource.
            source (BinaryIO): Readable binary stream. It is consumed.

        Returns:
            str: The content identifier, to be referenced from the body as
            `cid:<identifier>`.

        Raises:
            TokenGenerationError: If no content identifier can be generated.
            ContentReadError: If the stream cannot be read.
        """
        cid = self._new_token()
        data = _read_all(source, name)
        if self._inlines is None:
            self._inlines = {}
        self._inlines[name] = (data, cid)
        logger.debug(f"Inline attached {name!r} as {cid} ({len(data)} bytes)")
        return cid

    def attach_file(self, path: str) -> None:
        """Attaches a file from disk under its base name."""
        validate_path(path)
        with open(path, "rb") as f:
            self.attach(basename(path), f)

    def inline_attach_file(self, path: str) -> str:
        """Inline attaches a file from disk under its base name and returns its content id."""
        validate_path(path)
        with open(path, "rb") as f:
            return self.inline_attach(basename(path), f)

    def set_html(self, html: str) -> None:
        """Replaces the body with the UTF-8 encoding of `html`."""
        if not isinstance(html, str):
            raise ValueError("HTML must be a string.")
        self.body = None
        self._body_source = None
        self._body_bytes = None
        self._html = html.encode("utf-8")

    def use_template(self, file: str, **variables) -> None:
        """Renders a Jinja2 HTML template and uses it as the body.

        Args:
            file (str): Path to the HTML template file.
            **variables: Values for the template placeholders.

        Raises:
            ValueError: If the file is not an HTML template.
            FileNotFoundError: If the file does not exist.

        Example:
            use_template("templates/welcome.html", name="John")
        """
        validate_template(file)

        with open(file, "r", encoding="utf-8") as f:
            html = Template(f.read()).render(**variables)
        self.set_html(html)

    def _body_content(self) -> bytes:
        # The stream is drained once; the bytes are kept for later calls.
        if self.body is None:
            self._body_source = None
            self._body_bytes = None
            return self._html or b""
        if self.body is not self._body_source:
            self._body_source = self.body
            self._body_bytes = _read_all(self.body, "body")
            self._html = None
        return self._body_bytes or b""

    def _headers(self) -> list[str]:
        lines = []
        if self.sender.email:
            lines.append(f"From: {self._render(self.sender, 'From')}")

        to = [self._render(address, "To") for address in self.to]
        cc = [self._render(address, "Cc") for address in self.cc]
        if to:
            lines.append("To: " + ";".join(to))
        if cc:
            lines.append("Cc: " + ";".join(cc))

        validate_header_value("Subject", self.subject)
        lines.append(f"Subject: {self.subject}")
        lines.append("MIME-Version: 1.0")
        return lines

    @staticmethod
    def _render(address: Address, header: str) -> str:
        validate_header_value(f"{header} name", address.name)
        validate_header_value(f"{header} email", address.email)
        return str(address)

    def _parts(self):
        for name, data in (self._attachments or {}).items():
            yield name, data, None
        for name, (data, cid) in (self._inlines or {}).items():
            yield name, data, cid

    def serialize(self, linesep: str = "\n") -> bytes:
        """Builds the MIME representation of the message.

        Bcc addresses never appear in the headers. When the message has no
        attachments and no inline resources it is a single-part HTML email,
        otherwise a `multipart/mixed` document with one base64 part per entry.
        Each call uses a new boundary token.

        Args:
            linesep (str): Line terminator written between header lines and
                part delimiters. The body bytes are copied unchanged.

        Returns:
            bytes: The serialized message.

        Raises:
            TokenGenerationError: If the boundary token cannot be generated.
            HeaderInjectionError: If a header value contains a line break.
        """
        boundary = self._new_token()
        eol = linesep.encode("ascii")
        multipart = bool(self._attachments) or bool(self._inlines)

        buf = bytearray()
        for line in self._headers():
            buf += line.encode("utf-8") + eol

        if multipart:
            buf += f"Content-Type: multipart/mixed; boundary={boundary}".encode("ascii") + eol + eol
            buf += f"--{boundary}".encode("ascii") + eol

        buf += b"Content-Type: text/html; charset=utf-8" + eol + eol
        buf += self._body_content()

        if multipart:
            count = 0
            for name, data, cid in self._parts():
                validate_header_value("Filename", name)
                disposition = "inline" if cid else "attachment"
                lines = [
                    f"--{boundary}",
                    "Content-Type: application/octet-stream",
                    "Content-Transfer-Encoding: base64",
                ]
                if cid:
                    lines.append(f"Content-ID: <{cid}>")
                lines.append(f'Content-Disposition: {disposition}; filename="{name}"')

                buf += eol + eol
                buf += eol.join(line.encode("utf-8") for line in lines)
                buf += eol + eol
                buf += b64encode(data)
                buf += eol + f"--{boundary}".encode("ascii")
                count += 1
            buf += b"--"
            logger.debug(f"Serialized multipart message with {count} parts, boundary {boundary}")
        else:
            logger.debug("Serialized single-part message")

        return bytes(buf)


def _split_address(address) -> tuple[str, int]:
    if isinstance(address, tuple):
        host, port = address
    else:
        host, sep, port = str(address).rpartition(":")
        if not sep:
            raise ValueError(f"Address must be 'host:port', got {address!r}")
    return host, int(port)


def smtp_transport(address, auth, sender: str, recipients: list[str], raw: bytes, timeout: float = 30) -> dict:
    """Delivers raw message bytes through an SMTP relay.

    Port 465 uses an implicit SSL connection, port 25 a plain connection and
    any other port upgrades with STARTTLS.

    Args:
        address (str | tuple): `"host:port"` or `(host, port)`.
        auth (tuple | None): `(username, password)` to log in with, or `None`.
        sender (str): Envelope sender.
        recipients (list[str]): Envelope recipients.
        raw (bytes): The serialized message.
        timeout (float): Connection timeout in seconds.

    Returns:
        dict: Recipients refused by the relay, mapped to `(code, message)`.
    """
    host, port = _split_address(address)
    conn = SMTP_SSL if port == 465 else SMTP

    with conn(host, port, timeout=timeout) as smtp:
        if port not in (25, 465):
            smtp.starttls()
        if auth:
            username, password = auth
            smtp.login(username, password)
        refused = smtp.sendmail(sender, recipients, raw)

    for recipient, (code, reply) in refused.items():
        logger.warning(f"Relay refused {recipient}: {code} {reply!r}")
    return refused


def send(address, auth, message: Message, transport: Transport = smtp_transport, linesep: str = "\n"):
    """Validates the envelope of `message` and hands it to `transport`.

    Args:
        address: Relay address passed through to the transport.
        auth: Credentials passed through to the transport.
        message (Message): The message to deliver.
        transport (callable): Called as
            `transport(address, auth, sender, recipients, raw)`.
        linesep (str): Line terminator used for serialization.

    Returns:
        Whatever the transport returns.

    Raises:
        MissingSenderError: If the sender email is empty.
        NoRecipientsError: If To, Cc and Bcc are all empty.
    """
    if not message.sender.email:
        raise MissingSenderError("from is not set")

    recipients = message.recipients
    if not recipients:
        raise NoRecipientsError("zero receivers")

    raw = message.serialize(linesep)
    logger.info(f"Sending {len(raw)} bytes from {message.sender.email} to {len(recipients)} recipients")
    return transport(address, auth, message.sender.email, recipients, raw)


class EzSender:
    """Sends messages from a configured account.

    Example:
        smtp = {"server": "smtp.domain.com", "port": 587}
        sender = {"email": "me@domain.com", "password": "secret"}
        ez = EzSender(smtp, sender)
        msg = ez.message(to=["user@domain.com"], subject="Welcome!")
        msg.set_html("<h1>Hello!</h1>")
        ez.send(msg)
    """

    def __init__(self, smtp: dict, sender: dict, transport: Transport = smtp_transport, linesep: str = "\n"):
        """Initializes the sender with SMTP settings and account credentials.

        Args:
            smtp (dict): `server` (str) and `port` (int) of the relay.
            sender (dict): `email` and `password` of the account, and an
                optional display `name`.
            transport (callable): Delivery function, `smtp_transport` by default.
            linesep (str): Line terminator used for serialization.
        """
        validate_protocol_config(smtp)
        validate_sender(sender)

        self.smtp_server = smtp["server"]
        self.smtp_port = smtp["port"]

        self.sender_email = sender["email"]
        self.sender_password = sender["password"]
        self.sender_name = sender.get("name", "")

        self.transport = transport
        self.linesep = linesep

    def message(self, to=(), cc=(), bcc=(), subject: str = "") -> Message:
        """Creates a message from the configured account.

        Recipients may be `Address` objects or plain email strings.
        """
        return Message(
            sender=Address(self.sender_email, self.sender_name),
            to=_addresses(to),
            cc=_addresses(cc),
            bcc=_addresses(bcc),
            subject=subject,
        )

    def send(self, message: Message):
        """Sends `message` through the configured relay."""
        return send(
            (self.smtp_server, self.smtp_port),
            (self.sender_email, self.sender_password),
            message,
            transport=self.transport,
            linesep=self.linesep,
        )


def _addresses(values) -> list[Address]:
    if isinstance(values, (str, Address)):
        values = [values]
    return [v if isinstance(v, Address) else Address(v) for v in values]
