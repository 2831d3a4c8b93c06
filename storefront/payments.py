import logging
import random
import string
from typing import Optional

from .collaborators import PaymentIntent, PaymentOutcome, PaymentStatusCode

logger = logging.getLogger(__name__)

# smallest card charge the processor accepts, in minor units
MIN_CARD_AMOUNT = 50


def _token(prefix: str, k: int = 24) -> str:
    return prefix + "".join(random.choices(string.ascii_letters + string.digits, k=k))


class MockPaymentProvider:
    """Stand-in payment processor for demos and tests.

    Intents are issued locally and every confirmation resolves to `outcome`.
    """

    def __init__(self, outcome: PaymentStatusCode = PaymentStatusCode.SUCCEEDED, reason: Optional[str] = None):
        self.outcome = PaymentStatusCode(outcome)
        self.reason = reason
        self.intents = {}

    def create_payment_intent(self, amount_minor: int, currency: str) -> PaymentIntent:
        if amount_minor < MIN_CARD_AMOUNT:
            raise ValueError(f"Invalid amount {amount_minor} (minimum is {MIN_CARD_AMOUNT} minor units)")
        if not currency:
            raise ValueError("Missing currency")
        intent_id = _token("pi_")
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{_token('', 12)}",
            ephemeral_key=_token("ek_"),
            customer_id=_token("cus_", 14),
            amount=amount_minor,
            currency=currency,
        )
        self.intents[intent.client_secret] = intent
        logger.info("created payment intent %s for %d %s", intent.id, amount_minor, currency)
        return intent

    def confirm_payment(self, client_secret: str) -> PaymentOutcome:
        if self.intents.pop(client_secret, None) is None:
            return PaymentOutcome(PaymentStatusCode.FAILED, "Unknown payment")
        return PaymentOutcome(self.outcome, self.reason)
