"""Scan event models. One row per presentation of a code."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ScanLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    place_name: str | None = None


class ScanContext(BaseModel):
    """Whatever the scanning client could tell us. Every field is optional."""

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    referrer: str | None = Field(default=None, max_length=2048)
    client_fingerprint: str | None = Field(default=None, max_length=256)

    @property
    def location(self) -> ScanLocation | None:
        if self.latitude is None or self.longitude is None:
            return None
        return ScanLocation(latitude=self.latitude, longitude=self.longitude)


class ScanEvent(BaseModel):
    """Core scan event model, mapped 1:1 to the scan_events table. Append-only."""

    id: UUID
    code_id: UUID
    code: str
    created_at: datetime
    location: ScanLocation | None = None
    referrer: str | None = None
    client_fingerprint: str | None = None
