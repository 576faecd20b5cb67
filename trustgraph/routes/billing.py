from flask import Blueprint, request, current_app
from flask_login import current_user, login_required

from trustgraph.models import db
from trustgraph.services.billing_service import (
    StripeService, WebhookSignatureError, verify_webhook_signature, handle_event,
)
from trustgraph.utils import api_response

billing_bp = Blueprint('billing', __name__)


def _origin():
    return (request.headers.get('Origin') or current_app.config.get('SITE_URL') or request.host_url).rstrip('/')


@billing_bp.route('/api/stripe/checkout', methods=['POST'])
@login_required
def checkout():
    data = request.get_json(silent=True) or {}
    url = StripeService.create_checkout_session(current_user, data.get('interval'), _origin())
    return api_response(data={'url': url})


@billing_bp.route('/api/stripe/portal', methods=['POST'])
@login_required
def portal():
    return api_response(data={'url': StripeService.create_portal_session(current_user, _origin())})


@billing_bp.route('/api/stripe/webhook', methods=['POST'])
def stripe_webhook():
    """
    Receives events from Stripe.
    """
    # 1. Security Check
    try:
        event = verify_webhook_signature(
            request.get_data(),
            request.headers.get('Stripe-Signature'),
            current_app.config.get('STRIPE_WEBHOOK_SECRET'),
        )
    except WebhookSignatureError as e:
        current_app.logger.warning(f"Webhook signature verification failed: {e}")
        return api_response(success=False, error=f"Webhook Error: {e}", status=400)

    # 2. Apply; failures are logged but still acknowledged so Stripe does not retry
    try:
        handle_event(event)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error processing Stripe event {event.get('type')}: {e}")

    return api_response(data={'received': True})
