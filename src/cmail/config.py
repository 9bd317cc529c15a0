# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating cmail configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/cmail/  (default: ~/.config/cmail/)
#
# Files:
#   - config.toml: SMTP defaults (server, username, sender, limits)
#
# Passwords are NOT stored in the config file. They are retrieved from the
# system keyring (service "cmail", keyed by username):
#     keyring set cmail user@example.com
# =============================================================================

import logging
import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import keyring
import keyring.errors
import tomli_w  # For writing TOML (tomllib is read-only)

logger = logging.getLogger(__name__)


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in XDG paths
APP_NAME = "cmail"

# Keyring service under which SMTP passwords are stored
KEYRING_SERVICE = "cmail"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for cmail.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/cmail/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class SMTPConfig:
    """
    Defaults for the SMTP session; command-line options take precedence.

    Attributes:
        host: SMTP server hostname. Empty means it is derived from the
              username or sender address ("smtp." + domain).
        port: Server port, 0 for the scheme default (25 or 465).
        username: Login name; implies smtps:// when set.
        sender: Default "From" address.
        verify_certs: Validate the server certificate.
        timeout: Seconds allowed per SMTP operation.
        pull_size: Bytes requested from the payload stream per pull.
        max_recipients: Cap on recipients per message (0 = unlimited).
    """
    host: str = ""
    port: int = 0
    username: str = ""
    sender: str = ""
    verify_certs: bool = True
    timeout: float = 30
    pull_size: int = 64 * 1024
    max_recipients: int = 0

    @property
    def server(self) -> str:
        """Host with the port appended when one is configured."""
        if self.host and self.port:
            return f"{self.host}:{self.port}"
        return self.host


@dataclass
class Config:
    """
    Main configuration container for cmail.

    Usage:
        >>> config = Config.load()
        >>> config.smtp.host
        'smtp.example.com'
    """
    smtp: SMTPConfig = field(default_factory=SMTPConfig)

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from a config file.

        If the file doesn't exist, returns the default configuration.

        Args:
            path: File to read; the XDG location when omitted.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            logger.debug(f"No config file at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> Path:
        """
        Save configuration to a config file, creating its directory.

        Returns:
            The path written.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)
        return config_path

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create a Config object from a parsed TOML dictionary."""
        smtp = data.get("smtp", {})
        if not isinstance(smtp, dict):
            raise ConfigError("Invalid config file: [smtp] must be a table")

        config = cls()
        config.smtp = SMTPConfig(
            host=smtp.get("host", ""),
            port=smtp.get("port", 0),
            username=smtp.get("username", ""),
            sender=smtp.get("sender", ""),
            verify_certs=smtp.get("verify_certs", True),
            timeout=smtp.get("timeout", 30),
            pull_size=smtp.get("pull_size", 64 * 1024),
            max_recipients=smtp.get("max_recipients", 0),
        )

        for name in ("host", "username", "sender"):
            value = getattr(config.smtp, name)
            if not isinstance(value, str):
                raise ConfigError(f"Invalid config file: smtp {name} must be a string, got {value!r}")
        if not isinstance(config.smtp.verify_certs, bool):
            raise ConfigError(
                f"Invalid config file: verify_certs must be true or false, got {config.smtp.verify_certs!r}"
            )
        timeout = config.smtp.timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"Invalid config file: bad timeout {timeout!r}")
        if not isinstance(config.smtp.port, int) or not 0 <= config.smtp.port <= 65535:
            raise ConfigError(f"Invalid config file: bad smtp port {config.smtp.port!r}")
        if not isinstance(config.smtp.pull_size, int) or config.smtp.pull_size < 1:
            raise ConfigError(f"Invalid config file: bad pull_size {config.smtp.pull_size!r}")
        if not isinstance(config.smtp.max_recipients, int) or config.smtp.max_recipients < 0:
            raise ConfigError(
                f"Invalid config file: bad max_recipients {config.smtp.max_recipients!r}"
            )

        return config

    def _to_dict(self) -> dict[str, Any]:
        """Convert Config to a dictionary for TOML serialization."""
        return {
            "smtp": {
                "host": self.smtp.host,
                "port": self.smtp.port,
                "username": self.smtp.username,
                "sender": self.smtp.sender,
                "verify_certs": self.smtp.verify_certs,
                "timeout": self.smtp.timeout,
                "pull_size": self.smtp.pull_size,
                "max_recipients": self.smtp.max_recipients,
            },
        }


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def lookup_password(username: str) -> str | None:
    """
    Retrieve the SMTP password for a username from the system keyring.

    Returns:
        The password, or None when none is stored or no keyring is usable.
    """
    if not username:
        return None
    try:
        return keyring.get_password(KEYRING_SERVICE, username)
    except keyring.errors.KeyringError as e:
        logger.warning(f"Keyring lookup failed for {username}: {e}")
        return None


def print_paths() -> None:
    """
    Print the configuration paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
