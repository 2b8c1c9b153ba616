# © [2025] EDT&Partners. Licensed under CC BY 4.0.

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class CanvasCredentials(BaseModel):
    url: Optional[str] = None
    token: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.url) and bool(self.token)


class ToolConsumer(BaseModel):
    """A Tool Consumer trust record"""
    model_config = ConfigDict(from_attributes=True)

    consumer_key: str
    name: str
    secret: str
    enabled: bool = True
    created: Optional[datetime] = None


class ToolConsumerCreate(BaseModel):
    name: str
    key: Optional[str] = None
    secret: Optional[str] = None
