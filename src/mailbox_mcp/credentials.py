"""
Credentials Management
======================

Immutable mail configuration, loaded once at startup and passed explicitly
to the session engine and the SMTP sender.

Password sources, in order: EMAIL_PASSWORD, EMAIL_PASSWORD_FILE, then the
biosecret CLI when EMAIL_BIOSECRET_ACCOUNT is set. Credentials are held in
memory only and never logged.
"""

from __future__ import annotations

import json
import os
import subprocess
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from contracts import (
    BiosecretDeniedError,
    BiosecretNotFoundError,
    ConfigurationError,
)

DEFAULT_IMAP_HOST = "imap.gmail.com"
DEFAULT_IMAP_PORT = 993
DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587


@dataclass(frozen=True)
class Credentials:
    """IMAP credentials held in memory only."""

    username: str
    password: str = field(repr=False)
    server: str = DEFAULT_IMAP_HOST
    port: int = DEFAULT_IMAP_PORT
    use_ssl: bool = True


@dataclass(frozen=True)
class MailConfig:
    """Process configuration for one account."""

    credentials: Credentials
    smtp_server: str = DEFAULT_SMTP_HOST
    smtp_port: int = DEFAULT_SMTP_PORT
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    sender_address: str | None = None

    @property
    def email_address(self) -> str:
        """Sender address; the login name unless configured separately."""
        return self.sender_address or self.credentials.username


def retrieve_credentials(account_id: str) -> Credentials:
    """
    Retrieve credentials via biosecret CLI.

    PRE: biosecret CLI is available in PATH
    PRE: User has stored credentials under key "email-mcp/{account_id}"

    ERRORS:
    - BiosecretDeniedError: User cancelled biometric prompt
    - BiosecretNotFoundError: No credentials under expected key
    """
    try:
        result = subprocess.run(
            ["biosecret", "get", f"email-mcp/{account_id}"],
            capture_output=True,
            text=True,
            timeout=30,
        )

        if result.returncode != 0:
            stderr = result.stderr.lower() if result.stderr else ""
            if "cancel" in stderr or "denied" in stderr:
                raise BiosecretDeniedError("User cancelled biometric authentication")
            raise BiosecretNotFoundError(f"No credentials found for {account_id}")

        data = json.loads(result.stdout)
        return Credentials(
            username=data["username"],
            password=data["password"],
            server=data.get("server", DEFAULT_IMAP_HOST),
            port=data.get("port", DEFAULT_IMAP_PORT),
            use_ssl=data.get("use_ssl", True),
        )
    except subprocess.TimeoutExpired as e:
        raise BiosecretDeniedError("Biometric authentication timed out") from e
    except (json.JSONDecodeError, KeyError) as e:
        raise BiosecretNotFoundError("Invalid credential format") from e
    except FileNotFoundError as e:
        raise BiosecretNotFoundError("biosecret CLI not found in PATH") from e


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value


def _read_secret_file(path: str) -> str:
    try:
        value = Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read secret file {path}: {e}") from e
    if not value:
        raise ConfigurationError(f"Secret file is empty: {path}")
    return value


def _port(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {name}: {raw}") from e
    if port <= 0:
        raise ConfigurationError(f"Invalid {name}: {raw}")
    return port


def load_config_from_env(environ: Mapping[str, str] | None = None) -> MailConfig:
    """
    Build a MailConfig from environment variables.

    Required: EMAIL_ADDRESS and one of EMAIL_PASSWORD, EMAIL_PASSWORD_FILE
    or EMAIL_BIOSECRET_ACCOUNT.
    """
    env = os.environ if environ is None else environ

    address = _require(env, "EMAIL_ADDRESS")
    imap_host = env.get("IMAP_HOST", "").strip()
    imap_port = _port(env, "IMAP_PORT", 0)

    account = env.get("EMAIL_BIOSECRET_ACCOUNT", "").strip()
    direct = env.get("EMAIL_PASSWORD", "").strip()
    secret_file = env.get("EMAIL_PASSWORD_FILE", "").strip()

    if direct or secret_file:
        password = direct or _read_secret_file(secret_file)
        credentials = Credentials(
            username=address,
            password=password,
            server=imap_host or DEFAULT_IMAP_HOST,
            port=imap_port or DEFAULT_IMAP_PORT,
        )
    elif account:
        # Login name comes from the vault; host and port env settings win.
        credentials = retrieve_credentials(account)
        if imap_host:
            credentials = replace(credentials, server=imap_host)
        if imap_port:
            credentials = replace(credentials, port=imap_port)
    else:
        raise ConfigurationError(
            "Missing EMAIL_PASSWORD, EMAIL_PASSWORD_FILE or EMAIL_BIOSECRET_ACCOUNT"
        )

    return MailConfig(
        credentials=credentials,
        smtp_server=env.get("SMTP_HOST", "").strip() or DEFAULT_SMTP_HOST,
        smtp_port=_port(env, "SMTP_PORT", DEFAULT_SMTP_PORT),
        temp_dir=env.get("MAIL_TEMP_DIR", "").strip() or tempfile.gettempdir(),
        sender_address=address,
    )
