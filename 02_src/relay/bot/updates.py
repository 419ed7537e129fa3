"""Telegram Update payloads (the subset the router reads)."""

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    is_bot: bool = False
    username: str | None = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str
    title: str | None = None


class MessageEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    offset: int
    length: int


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    text: str | None = None
    entities: list[MessageEntity] = Field(default_factory=list)
    reply_to_message: "TelegramMessage | None" = None


TelegramMessage.model_rebuild()


class Update(BaseModel):
    """Incoming webhook payload."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None
