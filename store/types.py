"""
Account webhook configuration types.

One record per tenant account. The record keeps the flat field layout of
the persisted JSON document; ``targets`` derives the ordered delivery list.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AccountWebhookConfig(BaseModel):
    """Webhook delivery configuration for one account."""

    account_id: str = Field(..., alias="id", description="Account identifier (lookup key)")
    verify_token: str = Field(..., description="Token expected in the verification handshake")
    chat_api_url: str = Field("", description="Dedicated chat-backend delivery URL")
    chat_api_key: str = Field("", description="apikey header sent to the chat target")
    send_post_url_1: str = Field("", description="Generic forward target")
    send_post_url_2: str = Field("", description="Generic forward target")
    send_post_url_3: str = Field("", description="Generic forward target")

    class Config:
        populate_by_name = True

    @field_validator("account_id", "verify_token")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be a non-empty string")
        return value

    @field_validator(
        "chat_api_url", "chat_api_key", "send_post_url_1", "send_post_url_2", "send_post_url_3",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Optional[str]) -> str:
        return value or ""

    @property
    def targets(self) -> list[str]:
        """Configured delivery URLs in field order, empty entries omitted."""
        candidates = [
            self.chat_api_url,
            self.send_post_url_1,
            self.send_post_url_2,
            self.send_post_url_3,
        ]
        return [url.strip() for url in candidates if url and url.strip()]

    def to_document(self) -> dict[str, str]:
        """Serialize with the persisted key names (``id`` rather than ``account_id``)."""
        return self.model_dump(by_alias=True)
