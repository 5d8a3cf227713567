import logging
from typing import Any, Dict, Optional

import stripe

from storefront.config import Settings
from storefront.errors import ConfigurationError, GatewayError, SignatureError

logger = logging.getLogger(__name__)


def configure_stripe_client(timeout: float) -> None:
    """Bound every Stripe call by ``timeout`` seconds and make exactly one attempt."""
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
    stripe.max_network_retries = 0


class PaymentGateway:
    """
    Thin wrapper over the Stripe API.

    Holds only read-only configuration; the API key is passed with each
    request instead of being assigned to the module-level ``stripe.api_key``.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        currency: str = "usd",
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.stripe_currency,
        )

    def create_payment_intent(
        self,
        amount: int,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ):
        if not self.secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY is not configured")

        try:
            return stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=self.currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            message = exc.user_message or str(exc) or "Unknown error"
            logger.warning(f"Stripe rejected payment intent for {amount} {self.currency}: {message}")
            raise GatewayError(message) from exc

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify ``payload`` against the ``stripe-signature`` header and decode it.

        ``payload`` must be the raw request body; re-serialized JSON never
        verifies.
        """
        if not self.webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET is not configured")
        if not signature:
            raise SignatureError("Missing stripe-signature header")

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError:
            raise SignatureError("Invalid payload")
        except stripe.SignatureVerificationError:
            raise SignatureError("Invalid signature")
