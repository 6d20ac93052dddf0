"""
Stripe payment intents and the local payment ledger.

The API only converts the price to minor units and hands it to Stripe; the
client confirms the intent with the returned client secret and then posts the
finished payment to ``/payments``, which is stored as sent.
"""

import logging
from typing import Any, Dict

import stripe
from pymongo.database import Database

from config import PAYMENT_CURRENCY, STRIPE_SECRET_KEY
from database import create_document

logger = logging.getLogger(__name__)

stripe.api_key = STRIPE_SECRET_KEY


def to_minor_units(price: float) -> int:
    return int(round(price * 100))


def create_payment_intent(price: float, currency: str = PAYMENT_CURRENCY) -> str:
    amount = to_minor_units(price)
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        payment_method_types=["card"],
    )
    logger.info("Created payment intent %s for %s %s", intent.id, amount, currency)
    return intent.client_secret


def record_payment(db: Database, payment: Dict[str, Any]) -> Dict[str, Any]:
    doc = create_document(db, "payment", payment)
    logger.info("Recorded payment of %s from %s", payment.get("price"), payment.get("email"))
    return doc
