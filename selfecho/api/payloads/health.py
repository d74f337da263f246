from pydantic import BaseModel


class ListCacheReport(BaseModel):
    entries: int
    hits: int
    misses: int
    hit_rate: float
    ttl_seconds: int


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    database_latency_ms: float | None = None
    list_cache: ListCacheReport
    background_refreshes: int
    python_version: str
