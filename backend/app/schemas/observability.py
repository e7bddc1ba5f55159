from datetime import datetime

from pydantic import BaseModel, Field


class RouteMetricsRead(BaseModel):
    method: str
    path: str
    count: int
    avg_latency_ms: float
    max_latency_ms: float
    client_errors: int
    server_errors: int


class ObservabilityMetricsResponse(BaseModel):
    generated_at: datetime
    uptime_seconds: int
    total_requests: int
    scheduling_errors: dict[str, int] = Field(default_factory=dict)
    routes: list[RouteMetricsRead]
