"""Document-understanding webhook client."""

from ledgerflow.services.webhook.client import (
    DocumentWebhookClient,
    WebhookError,
    WebhookResponseError,
    WebhookTimeoutError,
    coarse_file_type,
    parse_webhook_body,
)

__all__ = [
    "DocumentWebhookClient",
    "WebhookError",
    "WebhookResponseError",
    "WebhookTimeoutError",
    "coarse_file_type",
    "parse_webhook_body",
]
