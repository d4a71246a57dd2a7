from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

RECEIVE_PERFORMANCE_DATA = "ReceivePerformanceData"
CONNECTED = "Connected"


class MetricsSnapshot(BaseModel):
    """One immutable reading of the host metrics.

    Floats are rounded on construction (1 decimal for percentages and uptime,
    2 for GB) so an unchanged snapshot always serializes to the same bytes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cpu_usage: float = Field(default=0.0, ge=0.0, le=100.0, alias="cpuUsage")
    memory_usage: float = Field(default=0.0, ge=0.0, le=100.0, alias="memoryUsage")
    available_memory_gb: float = Field(default=0.0, ge=0.0, alias="availableMemoryGb")
    total_processes: int = Field(default=0, ge=0, alias="totalProcesses")
    system_uptime_sec: float = Field(default=0.0, ge=0.0, alias="systemUptimeSec")

    @field_validator("cpu_usage", "memory_usage", "system_uptime_sec")
    @classmethod
    def _round_one(cls, v: float) -> float:
        return round(v, 1)

    @field_validator("available_memory_gb")
    @classmethod
    def _round_two(cls, v: float) -> float:
        return round(v, 2)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_wire(cls, data: dict) -> MetricsSnapshot:
        return cls.model_validate(data)


class PushMessage(BaseModel):
    """Envelope for one server-to-client push event."""

    event: str = RECEIVE_PERFORMANCE_DATA
    data: MetricsSnapshot

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
