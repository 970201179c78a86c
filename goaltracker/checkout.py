import logging
import stripe
from config import STRIPE_SECRET_KEY, APP_URL
from .errors import ConnectivityError, ValidationError, PaymentConfigurationError

logger = logging.getLogger(__name__)


def create_checkout_session(price_id: str, user_id: str, customer_email: str = None) -> dict:
    """Create a hosted Stripe Checkout Session for a subscription plan."""
    if not STRIPE_SECRET_KEY:
        logger.error("STRIPE_SECRET_KEY is not set in environment variables")
        raise PaymentConfigurationError()
    stripe.api_key = STRIPE_SECRET_KEY
    try:
        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            customer_email=customer_email,
            client_reference_id=user_id,
            success_url=f"{APP_URL}/subscription-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{APP_URL}/pricing",
        )
    except stripe.InvalidRequestError as e:
        logger.error(f"Invalid checkout request: {e}")
        raise ValidationError(e.user_message or "Invalid subscription plan") from e
    except stripe.StripeError as e:
        logger.error(f"Error creating checkout session: {e}")
        raise ConnectivityError("Could not reach the payment service. Please try again.") from e
    logger.info(f"Created checkout session {session.id} for user {user_id}")
    return {"sessionId": session.id}
