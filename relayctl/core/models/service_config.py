"""
ServiceConfig — runtime settings of the UDP gateway.

Persisted as a systemd environment file so the unit can reference it
with ``EnvironmentFile=`` and the operator can edit it by hand::

    LISTEN_ADDR="127.0.0.1:7300"
    MAX_CLIENTS="4096"
    MAX_CONN_PER_CLIENT="4096"
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

# Environment variable name → model field
ENV_FIELDS: dict[str, str] = {
    "LISTEN_ADDR": "listen_addr",
    "MAX_CLIENTS": "max_clients",
    "MAX_CONN_PER_CLIENT": "max_conn_per_client",
}

_ASSIGN_RE = re.compile(r"^\s*([A-Z_][A-Z0-9_]*)=(.*)$")


class ServiceConfig(BaseModel):
    """Listen address and client limits for badvpn-udpgw."""

    listen_addr: str = "127.0.0.1:7300"
    max_clients: int = Field(default=4096, gt=0)
    max_conn_per_client: int = Field(default=4096, gt=0)

    @field_validator("listen_addr")
    @classmethod
    def _check_listen_addr(cls, value: str) -> str:
        return validate_listen_addr(value)

    @property
    def port(self) -> int:
        return int(self.listen_addr.rsplit(":", 1)[1])

    def to_env(self) -> dict[str, str]:
        """Environment variable mapping, in file order."""
        return {env: str(getattr(self, attr)) for env, attr in ENV_FIELDS.items()}

    def render(self, env_file: str) -> str:
        """Render the full environment file written on first install."""
        lines = [
            "# BadVPN UDPGW config (used by systemd)",
            f"# Edit with: relayctl edit  (or any editor on {env_file})",
            "",
        ]
        lines += [f'{key}="{value}"' for key, value in self.to_env().items()]
        return "\n".join(lines) + "\n"

    @classmethod
    def parse(cls, text: str) -> ServiceConfig:
        """Build a ServiceConfig from environment file text.

        Unknown keys and comments are ignored; missing keys keep their
        defaults.  Raises ``pydantic.ValidationError`` on bad values.
        """
        values = parse_env_text(text)
        data = {attr: values[env] for env, attr in ENV_FIELDS.items() if env in values}
        return cls.model_validate(data)


def validate_listen_addr(value: str) -> str:
    """Check a ``host:port`` string and return it unchanged."""
    value = value.strip()
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise ValueError(f"listen address must be host:port, got {value!r}")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid port in listen address {value!r}")
    if host.startswith("[") != host.endswith("]"):
        raise ValueError(f"unbalanced brackets in listen address {value!r}")
    return value


def parse_env_text(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` / ``KEY="value"`` lines into a dict."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        if line.lstrip().startswith("#"):
            continue
        m = _ASSIGN_RE.match(line)
        if not m:
            continue
        raw = m.group(2).strip()
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
            raw = raw[1:-1]
        values[m.group(1)] = raw
    return values


def replace_env_field(text: str, name: str, value: str) -> str:
    """Rewrite exactly one ``NAME=`` line, leaving every other byte alone.

    A repeated key rewrites its last active line, the one the service reads.
    When the field is absent it is appended at the end of the file.
    """
    new_line = f'{name}="{value}"'
    lines = text.splitlines(keepends=True)
    for i in reversed(range(len(lines))):
        line = lines[i]
        m = _ASSIGN_RE.match(line)
        if m and m.group(1) == name and not line.lstrip().startswith("#"):
            ending = line[len(line.rstrip("\r\n")):]
            lines[i] = new_line + ending
            return "".join(lines)

    if text and not text.endswith("\n"):
        text += "\n"
    return text + new_line + "\n"
