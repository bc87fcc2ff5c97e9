# forexhub/schemas/health.py
"""
Schemas for the health and storage status surfaces.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class StorageStatus(BaseModel):
    """Snapshot of the storage selector's state."""

    connected: bool = Field(..., description="True while the durable store is active")
    storage_type: Literal["durable", "volatile"]
    can_persist: bool = Field(..., description="False means writes are lost on restart")
    last_check: datetime | None = None
    last_error: str | None = None
    transitions: int = 0
    initialization_attempts: int = 0
    durable_configured: bool = False


class HealthResponse(BaseModel):
    """Public health payload. Monitoring treats storage_type=volatile as degraded."""

    status: Literal["ok", "degraded"]
    connected: bool
    storage_type: Literal["durable", "volatile"]
    can_persist: bool
