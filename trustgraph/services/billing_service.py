import json
from datetime import datetime, timezone

import requests
import stripe
from flask import current_app

from trustgraph.models import db, User, BillingEvent, PLAN_EXPLORER, PLAN_PRO
from trustgraph.services.errors import ServiceError
from trustgraph.utils import retry_request

SIGNATURE_TOLERANCE_SECONDS = 300


class WebhookSignatureError(Exception):
    pass


class StripeService:
    BASE_URL = "https://api.stripe.com/v1"

    @staticmethod
    def get_api_key():
        api_key = current_app.config.get('STRIPE_SECRET_KEY')
        if not api_key:
            raise ServiceError('Stripe is not configured', status=500)
        return api_key

    @staticmethod
    def _request(method, path, data=None):
        api_key = StripeService.get_api_key()
        url = f"{StripeService.BASE_URL}{path}"

        @retry_request()
        def perform():
            response = requests.request(method, url, auth=(api_key, ''), data=data, timeout=15)
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        response = perform()
        body = response.json()
        if response.status_code >= 400:
            message = body.get('error', {}).get('message') or f"Stripe error {response.status_code}"
            current_app.logger.error(f"Stripe {method} {path} failed: {message}")
            raise ServiceError(message, status=502)
        return body

    @staticmethod
    def create_customer(user):
        data = {
            'email': user.email,
            'metadata[profile_id]': str(user.id),
        }
        if user.supabase_uid:
            data['metadata[supabase_user_id]'] = user.supabase_uid
        customer = StripeService._request('POST', '/customers', data)
        return customer['id']

    @staticmethod
    def create_checkout_session(user, interval, origin):
        """Pro subscription checkout for an explorer account. Returns the hosted page URL."""
        if user.plan != PLAN_EXPLORER:
            raise ServiceError('Already on a paid plan')

        interval = 'yearly' if interval == 'yearly' else 'monthly'
        config_key = 'STRIPE_PRO_YEARLY_PRICE_ID' if interval == 'yearly' else 'STRIPE_PRO_MONTHLY_PRICE_ID'
        price_id = current_app.config.get(config_key)
        if not price_id:
            raise ServiceError('Stripe price not configured', status=500)

        if not user.stripe_customer_id:
            user.stripe_customer_id = StripeService.create_customer(user)
            db.session.commit()

        data = {
            'customer': user.stripe_customer_id,
            'mode': 'subscription',
            'line_items[0][price]': price_id,
            'line_items[0][quantity]': 1,
            'success_url': f"{origin}/upgrade?success=true",
            'cancel_url': f"{origin}/upgrade?cancelled=true",
            'metadata[profile_id]': str(user.id),
        }
        if user.supabase_uid:
            data['metadata[supabase_user_id]'] = user.supabase_uid

        session = StripeService._request('POST', '/checkout/sessions', data)
        current_app.logger.info(f"Stripe checkout session created for user {user.id} ({interval})")
        return session['url']

    @staticmethod
    def create_portal_session(user, origin):
        if not user.stripe_customer_id:
            raise ServiceError('No billing account found')
        session = StripeService._request('POST', '/billing_portal/sessions', {
            'customer': user.stripe_customer_id,
            'return_url': f"{origin}/dashboard/settings/billing",
        })
        return session['url']

    @staticmethod
    def billing_summary(user):
        summary = {
            'plan': user.plan,
            'interval': None,
            'status': None,
            'renewal_date': None,
            'stripe_customer_id': user.stripe_customer_id,
        }
        if not user.stripe_subscription_id:
            return summary

        sub = StripeService._request('GET', f"/subscriptions/{user.stripe_subscription_id}")
        items = (sub.get('items') or {}).get('data') or []
        first = items[0] if items else {}
        period_end = first.get('current_period_end') or sub.get('current_period_end')

        summary['interval'] = ((first.get('price') or {}).get('recurring') or {}).get('interval')
        summary['status'] = sub.get('status')
        if period_end:
            summary['renewal_date'] = datetime.fromtimestamp(period_end, tz=timezone.utc).isoformat()
        return summary


def verify_webhook_signature(payload, signature_header, secret, tolerance=SIGNATURE_TOLERANCE_SECONDS):
    """
    Checks a Stripe-Signature header against the raw request body with the
    Stripe SDK and returns the event as a plain dict.
    """
    if not signature_header or not secret:
        raise WebhookSignatureError('Missing signature or webhook secret')

    if isinstance(payload, bytes):
        payload = payload.decode('utf-8')

    try:
        stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(e.user_message or str(e))
    except ValueError:
        raise WebhookSignatureError('Invalid payload')

    return json.loads(payload)


def _user_from_metadata(metadata):
    profile_id = metadata.get('profile_id')
    if profile_id and str(profile_id).isdigit():
        user = db.session.get(User, int(profile_id))
        if user:
            return user
    supabase_uid = metadata.get('supabase_user_id')
    if supabase_uid:
        return User.query.filter_by(supabase_uid=supabase_uid).first()
    return None


def handle_event(event):
    """Applies a verified webhook event to the matching profile. Unknown types are only logged."""
    event_type = event.get('type')
    obj = (event.get('data') or {}).get('object') or {}
    event_id = event.get('id')

    if event_id and BillingEvent.query.filter_by(stripe_event_id=event_id).first():
        current_app.logger.info(f"Stripe event {event_id} already processed")
        return

    user = None
    if event_type == 'checkout.session.completed':
        user = _user_from_metadata(obj.get('metadata') or {})
        subscription = obj.get('subscription')
        if isinstance(subscription, dict):
            subscription = subscription.get('id')
        if user:
            user.plan = PLAN_PRO
            user.stripe_subscription_id = subscription
            current_app.logger.info(f"User {user.id} upgraded to Pro (sub: {subscription})")

    elif event_type == 'customer.subscription.deleted':
        sub_id = obj.get('id')
        user = User.query.filter_by(stripe_subscription_id=sub_id).first() if sub_id else None
        if user:
            user.plan = PLAN_EXPLORER
            user.stripe_subscription_id = None
            current_app.logger.info(f"User {user.id} downgraded to Explorer (sub deleted: {sub_id})")

    db.session.add(BillingEvent(
        profile_id=user.id if user else None,
        event_type=event_type or 'unknown',
        payload=event,
        stripe_event_id=event_id,
    ))
    db.session.commit()
