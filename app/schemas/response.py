from pydantic import BaseModel
from typing import Generic, TypeVar, Optional

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    status: str
    data: Optional[T] = None
