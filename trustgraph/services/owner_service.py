from flask import current_app, request
from flask_login import current_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from trustgraph.models import db, SurveyRun, PLAN_PRO, PLAN_ENTERPRISE
from trustgraph.services.errors import NotFound, NotAuthorised

OWNER_COOKIE_MAX_AGE = 60 * 60 * 24 * 30
UNLOCK_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def owner_cookie_name(run_id):
    return f"ti_owner_{run_id}"


def unlock_cookie_name(run_id):
    return f"ti_unlocked_{run_id}"


def _serializer(salt):
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=salt)


def _set_signed_cookie(response, name, value, salt, max_age):
    response.set_cookie(
        name,
        _serializer(salt).dumps(value),
        max_age=max_age,
        httponly=True,
        samesite='Lax',
        secure=current_app.config.get('ENV_NAME') == 'production',
        path='/',
    )
    return response


def _read_signed_cookie(name, salt, max_age):
    raw = request.cookies.get(name)
    if not raw:
        return None
    try:
        return _serializer(salt).loads(raw, max_age=max_age)
    except SignatureExpired:
        return None
    except BadSignature:
        current_app.logger.warning(f"Ignoring tampered cookie {name}")
        return None


def set_owner_cookie(response, run_id):
    return _set_signed_cookie(response, owner_cookie_name(run_id), run_id, 'run-owner', OWNER_COOKIE_MAX_AGE)


def has_owner_cookie(run_id):
    return _read_signed_cookie(owner_cookie_name(run_id), 'run-owner', OWNER_COOKIE_MAX_AGE) == run_id


def set_unlock_cookie(response, run_id):
    return _set_signed_cookie(response, unlock_cookie_name(run_id), run_id, 'run-unlock', UNLOCK_COOKIE_MAX_AGE)


def has_unlock_cookie(run_id):
    return _read_signed_cookie(unlock_cookie_name(run_id), 'run-unlock', UNLOCK_COOKIE_MAX_AGE) == run_id


def is_run_owner(run):
    return current_user.is_authenticated and run.owner_user_id == current_user.id


def can_manage_run(run):
    """Signed-in owner, or a browser that proved the owner token earlier."""
    return is_run_owner(run) or has_owner_cookie(run.id)


def is_unlocked(run):
    if is_run_owner(run) and current_user.plan in (PLAN_PRO, PLAN_ENTERPRISE):
        return True
    return has_unlock_cookie(run.id)


def get_managed_run(run_id):
    run = db.session.get(SurveyRun, run_id)
    if not run:
        raise NotFound('Survey not found')
    if not can_manage_run(run):
        raise NotAuthorised('Not authorised')
    return run
