from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ResponseStatus(BaseModel):
    Code: int
    Message: str


class Envelope(BaseModel, Generic[T]):
    data: Optional[T] = None
    Status: ResponseStatus


class ErrorResponse(BaseModel):
    data: None = None
    Status: ResponseStatus
