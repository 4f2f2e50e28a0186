"""Distributed uptime callback schemas."""
from typing import Optional, Union
from pydantic import BaseModel, Field


class Location(BaseModel):
    lat: float
    lng: float


class DistributedResult(BaseModel):
    """Result of a single probe run by the distributed network.

    Durations are in nanoseconds. Fields the core does not use are kept
    so the raw result can be stored with the check.
    """
    status_code: Optional[int] = 0
    error: Optional[str] = ""
    dns_took: Optional[float] = None
    conn_took: Optional[float] = None
    connect_took: Optional[float] = None
    tls_took: Optional[float] = None
    first_byte_took: Optional[float] = 0
    body_read_took: Optional[float] = None
    continent: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None
    upt_burnt: Optional[Union[str, float]] = None
    location: Optional[Location] = None

    class Config:
        extra = "allow"


class DistributedCallback(BaseModel):
    """Body posted to the callback URL by the distributed network."""
    id: int = Field(..., description="Monitor id sent with the dispatch request")
    result: DistributedResult


class CallbackAck(BaseModel):
    message: str = "OK"
