"""
CertificateRecord — a TLS certificate issued for the panel.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class PanelSettings(BaseModel):
    """What the panel reports about its own web listener."""

    base_path: str = "/"
    port: int = 443


class CertificateRecord(BaseModel):
    """Result of a completed issuance, handed over to the panel."""

    domain: str
    cert_path: str
    key_path: str
    issued_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    panel: PanelSettings = Field(default_factory=PanelSettings)

    @property
    def access_url(self) -> str:
        base = self.panel.base_path or "/"
        if not base.startswith("/"):
            base = "/" + base
        return f"https://{self.domain}:{self.panel.port}{base}"
