"""
Build models — what to compile and what was compiled.

BuildSelection maps one-to-one onto BadVPN's CMake feature flags
(``-DBUILD_<COMPONENT>=1``) and onto the binaries the build must
produce.  BuildInfo is the metadata written next to the manifest
after a successful install.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Component flag → output path relative to the build directory
COMPONENT_OUTPUTS: dict[str, str] = {
    "UDPGW": "udpgw/badvpn-udpgw",
    "TUN2SOCKS": "tun2socks/badvpn-tun2socks",
    "SERVER": "server/badvpn-server",
    "CLIENT": "client/badvpn-client",
    "FLOODER": "flooder/badvpn-flooder",
    "TUNCTL": "tunctl/badvpn-tunctl",
    "NCD": "ncd/badvpn-ncd",
}

SelectionKind = Literal["full", "tun2socks-only", "udpgw-only", "custom"]

_PRESETS: dict[str, tuple[str, ...]] = {
    "full": ("UDPGW", "TUN2SOCKS"),
    "tun2socks-only": ("TUN2SOCKS",),
    "udpgw-only": ("UDPGW",),
}

SELECTION_KINDS: tuple[str, ...] = ("full", "tun2socks-only", "udpgw-only", "custom")


class BuildSelection(BaseModel):
    """Which BadVPN components a run builds.  Immutable once chosen."""

    model_config = ConfigDict(frozen=True)

    kind: SelectionKind = "full"
    flags: tuple[str, ...] = ()

    @field_validator("flags", mode="before")
    @classmethod
    def _normalize_flags(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        out: list[str] = []
        for item in value:  # type: ignore[union-attr]
            flag = str(item).strip().upper()
            if flag.startswith("BUILD_"):
                flag = flag[len("BUILD_"):]
            if flag not in COMPONENT_OUTPUTS:
                raise ValueError(
                    f"unknown component {item!r}; "
                    f"valid: {', '.join(sorted(COMPONENT_OUTPUTS))}"
                )
            if flag not in out:
                out.append(flag)
        return tuple(out)

    @model_validator(mode="after")
    def _check_kind(self) -> BuildSelection:
        if self.kind == "custom" and not self.flags:
            raise ValueError("custom selection needs at least one component flag")
        if self.kind != "custom" and self.flags:
            raise ValueError(f"selection {self.kind!r} does not take component flags")
        return self

    @classmethod
    def parse(cls, kind: str, flags: list[str] | tuple[str, ...] = ()) -> BuildSelection:
        return cls(kind=kind, flags=tuple(flags))  # type: ignore[arg-type]

    @property
    def components(self) -> tuple[str, ...]:
        if self.kind == "custom":
            return self.flags
        return _PRESETS[self.kind]

    @property
    def includes_udpgw(self) -> bool:
        return "UDPGW" in self.components

    def cmake_flags(self) -> list[str]:
        """``-D`` definitions passed to the CMake configure step."""
        return ["-DBUILD_NOTHING_BY_DEFAULT=1"] + [
            f"-DBUILD_{c}=1" for c in self.components
        ]

    def expected_outputs(self) -> dict[str, str]:
        """Binary name → path relative to the build directory."""
        return {
            COMPONENT_OUTPUTS[c].rsplit("/", 1)[1]: COMPONENT_OUTPUTS[c]
            for c in self.components
        }

    def label(self) -> str:
        if self.kind == "custom":
            return f"custom({','.join(self.flags)})"
        return self.kind


class SourceState(BaseModel):
    """The checkout handed from the provisioner to the build."""

    path: str
    ref: str
    commit: str


class BuildInfo(BaseModel):
    """Metadata of the last successful install (build_info.json)."""

    selection: str
    cmake_flags: list[str] = Field(default_factory=list)
    source_url: str = ""
    source_ref: str = ""
    source_commit: str = ""
    binaries: list[str] = Field(default_factory=list)
    manager_version: str = ""
    installed_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
