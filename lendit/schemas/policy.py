"""Policy schemas."""
from datetime import datetime
from pydantic import BaseModel, Field


class PolicyPublish(BaseModel):
    content: str = Field(min_length=1)
    title: str | None = None
    short_summary: str | None = None


class PolicyVersionInfo(BaseModel):
    slug: str
    version: int
    title: str
    short_summary: str | None
    content_hash: str
    published_at: datetime | None

    class Config:
        from_attributes = True


class PolicyResponse(PolicyVersionInfo):
    content: str
