from dispatch.channels import DeliveryResult, Digest, EmailChannel, WebhookChannel, resolve_channel
from dispatch.dispatcher import (
    ChannelNotFoundError,
    DeliveryError,
    Dispatcher,
    DispatchError,
    TaskNotFoundError,
)

__all__ = [
    "DeliveryResult",
    "Digest",
    "EmailChannel",
    "WebhookChannel",
    "resolve_channel",
    "ChannelNotFoundError",
    "DeliveryError",
    "Dispatcher",
    "DispatchError",
    "TaskNotFoundError",
]
