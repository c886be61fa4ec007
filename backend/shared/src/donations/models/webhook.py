"""Webhook processing result model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import WebhookOutcome


class WebhookResult(BaseModel):
    """Outcome of one webhook delivery, ready to send back to Square.

    ``body`` is the JSON acknowledgement (``{"ok": ..., ...}``) and
    ``status_code`` tells Square whether to retry: only 5xx triggers a
    redelivery that can succeed.
    """

    model_config = ConfigDict(strict=True)

    status_code: int = Field(..., description="HTTP status for the acknowledgement")
    outcome: WebhookOutcome
    body: dict[str, Any] = Field(default_factory=dict)
    payment_id: str | None = None
    team_ref: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.body.get("ok"))

    @classmethod
    def accepted(
        cls,
        outcome: WebhookOutcome = WebhookOutcome.STORED,
        *,
        payment_id: str | None = None,
        team_ref: str | None = None,
        **context: Any,
    ) -> "WebhookResult":
        return cls(
            status_code=200,
            outcome=outcome,
            body={"ok": True, **context},
            payment_id=payment_id,
            team_ref=team_ref,
        )

    @classmethod
    def failed(
        cls,
        status_code: int,
        error: str,
        *,
        outcome: WebhookOutcome = WebhookOutcome.REJECTED,
        payment_id: str | None = None,
    ) -> "WebhookResult":
        return cls(
            status_code=status_code,
            outcome=outcome,
            body={"ok": False, "error": error},
            payment_id=payment_id,
        )
