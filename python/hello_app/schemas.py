"""Pydantic schemas for API responses."""

from pydantic import BaseModel


class HelloResponse(BaseModel):
    """Greeting response schema."""

    Message: str

    @classmethod
    def for_count(cls, count: int) -> "HelloResponse":
        return cls(Message=f"Hello World {count}")
