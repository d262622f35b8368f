"""
Configuration for hastecat

Settings are fixed at startup and passed by value into the components that
need them.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_LISTEN = ":99"
DEFAULT_LIMIT = 128 * 1024  # 131072 bytes
DEFAULT_READ_TIMEOUT = 2.0
DEFAULT_WRITE_TIMEOUT = 1.0
DEFAULT_PUBLISH_TIMEOUT = 10.0
DEFAULT_SHUTDOWN_TIMEOUT = 5.0


@dataclass(frozen=True)
class ServerConfig:
    """
    Process-wide server settings.

    Attributes:
        hastebin_url: Base URL of the haste-server (trailing slash trimmed)
        listen: Address to bind when no socket is inherited, as host:port
        limit: Maximum payload size in bytes, None for unbounded
        read_timeout: Idle-read deadline in seconds, re-armed before each read
        write_timeout: Deadline in seconds for writing the reply
        publish_timeout: Deadline in seconds for the upstream publish
        shutdown_timeout: How long to wait for in-flight connections on exit
        log_level: Log level name
    """
    hastebin_url: str
    listen: str = DEFAULT_LISTEN
    limit: Optional[int] = DEFAULT_LIMIT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.hastebin_url or not self.hastebin_url.strip():
            raise ValueError("hastebin_url is required")
        # frozen, so normalise through object.__setattr__
        object.__setattr__(self, "hastebin_url", self.hastebin_url.strip().rstrip("/"))

        # 0 is accepted as "no limit" to match the command line flag
        if self.limit is not None:
            if self.limit < 0:
                raise ValueError(f"limit must not be negative: {self.limit}")
            if self.limit == 0:
                object.__setattr__(self, "limit", None)

        for name in ("read_timeout", "write_timeout", "publish_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive: {getattr(self, name)}")
        if self.shutdown_timeout < 0:
            raise ValueError(f"shutdown_timeout must not be negative: {self.shutdown_timeout}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ServerConfig":
        """
        Build a config from HASTECAT_* environment variables.

        Keyword overrides win over the environment; anything left unset
        keeps its default.

        Raises:
            ValueError: If a variable holds an invalid value or no haste-server
                URL is configured
        """
        env = os.environ if environ is None else environ
        values = {}

        if env.get("HASTECAT_HASTEBIN"):
            values["hastebin_url"] = env["HASTECAT_HASTEBIN"]
        if env.get("HASTECAT_LISTEN"):
            values["listen"] = env["HASTECAT_LISTEN"]
        if env.get("HASTECAT_LIMIT"):
            values["limit"] = _parse_int("HASTECAT_LIMIT", env["HASTECAT_LIMIT"])
        if env.get("HASTECAT_LOG_LEVEL"):
            values["log_level"] = env["HASTECAT_LOG_LEVEL"]
        for key, field_name in (
            ("HASTECAT_READ_TIMEOUT", "read_timeout"),
            ("HASTECAT_WRITE_TIMEOUT", "write_timeout"),
            ("HASTECAT_PUBLISH_TIMEOUT", "publish_timeout"),
            ("HASTECAT_SHUTDOWN_TIMEOUT", "shutdown_timeout"),
        ):
            if env.get(key):
                values[field_name] = _parse_float(key, env[key])

        values.update({k: v for k, v in overrides.items() if v is not None})
        if "hastebin_url" not in values:
            raise ValueError("hastebin_url is required (set HASTECAT_HASTEBIN or pass --hastebin)")
        return cls(**values)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
