from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LinkingCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(description="Code to send to the bot, e.g. `/link ABC123`")
    expires_at: datetime


class LinkStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    connected: bool
    telegram_username: str | None = None
    code_pending: bool = False
