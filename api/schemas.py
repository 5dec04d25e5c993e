"""Request bodies for the admin API."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class SourceIn(BaseModel):
    name: str = Field(min_length=1)
    type: Literal["rss"] = "rss"
    url: str = Field(min_length=1)
    category: str = ""
    enabled: bool = True
    interval_mins: int = Field(default=60, ge=1)


class ChannelIn(BaseModel):
    name: str = Field(min_length=1)
    type: Literal["email", "webhook", "ntfy"]
    config: dict[str, Any] | str = Field(default_factory=dict)
    enabled: bool = True


class TemplateIn(BaseModel):
    name: str = Field(min_length=1)
    subject: str = ""
    content: str = ""
    is_default: bool = False


class TaskIn(BaseModel):
    name: str = Field(min_length=1)
    cron_expr: str
    channel_id: str
    template_id: str = ""
    categories: str = ""  # comma separated, empty = all
    enabled: bool = True


class AutoPushIn(BaseModel):
    enabled: bool = False
    threshold: int = 6
    channel_id: str = ""
    template_id: str = ""


class AIConfigIn(BaseModel):
    provider: str = "openai"
    api_key: str = ""  # blank keeps the saved key
    base_url: str = ""
    model: str = ""
    enable_trans: bool = True
    enable_summary: bool = True
    enable_filter: bool = False
    target_lang: str = "zh-CN"


class PreviewIn(BaseModel):
    content: str
    subject: str = ""


class TemplateDesignIn(BaseModel):
    description: str = ""
    current_template: str = ""


class TextIn(BaseModel):
    text: str
    target_lang: str | None = None
