"""Validation helpers shared by the EZCompose modules."""

from os.path import isfile

from .exceptions import HeaderInjectionError


def validate_protocol_config(config: dict) -> None:
    """Validates a server configuration dictionary.

    Args:
        config (dict): Must contain `server` (str) and `port` (int).

    Raises:
        ValueError: If a key is missing or has the wrong type.
    """
    if not isinstance(config, dict):
        raise ValueError("Server configuration must be a dictionary.")
    if not isinstance(config.get("server"), str) or not config["server"]:
        raise ValueError("Server configuration requires a non-empty 'server'.")
    port = config.get("port")
    if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
        raise ValueError("Server configuration requires an integer 'port'.")


def validate_sender(sender: dict) -> None:
    """Validates the sender account dictionary.

    Args:
        sender (dict): Must contain `email` and `password` strings.
            An optional `name` is used as the display name.

    Raises:
        ValueError: If a key is missing or is not a string.
    """
    if not isinstance(sender, dict):
        raise ValueError("Sender must be a dictionary.")
    for key in ("email", "password"):
        if not isinstance(sender.get(key), str):
            raise ValueError(f"Sender requires a string '{key}'.")
    if not sender["email"]:
        raise ValueError("Sender email cannot be empty.")
    if not isinstance(sender.get("name", ""), str):
        raise ValueError("Sender name must be a string.")


def validate_path(path: str) -> None:
    """Checks that `path` is a string pointing to an existing file.

    Raises:
        ValueError: If `path` is not a string.
        FileNotFoundError: If the file does not exist.
    """
    if not isinstance(path, str):
        raise ValueError("Path must be a string.")
    if not isfile(path):
        raise FileNotFoundError(f"File not found: {path}")


def validate_template(path: str) -> None:
    """Checks that `path` is an existing HTML template file."""
    validate_path(path)
    if not path.lower().endswith((".html", ".htm", ".j2", ".jinja")):
        raise ValueError(f"Template must be an HTML file: {path}")


def validate_header_value(field: str, value: str) -> None:
    """Rejects header values that would start a new header line.

    Raises:
        HeaderInjectionError: If `value` contains a carriage return or line feed.
    """
    if "\r" in value or "\n" in value:
        raise HeaderInjectionError(f"{field} contains a line break: {value!r}")
