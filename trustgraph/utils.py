import functools
import re
import secrets
import string
import time
from urllib.parse import urlencode

import requests
from flask import jsonify

TOKEN_ALPHABET = string.ascii_letters + string.digits
INVITE_TOKEN_LENGTH = 28
OWNER_TOKEN_LENGTH = 32

PROTECTED_PREFIXES = (
    '/dashboard',
    '/systems',
    '/trustorg',
    '/trustsys',
    '/actions',
    '/reports',
    '/verisum-admin',
)

_UUID_RESULTS_RE = re.compile(
    r'^/dashboard/([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})$',
    re.IGNORECASE,
)
_SAFE_PATH_RE = re.compile(r'^/(?:[^/]|$)')


def api_response(success=True, data=None, error=None, status=200):
    """Standardized JSON response for all API routes."""
    response = {
        'success': success,
        'data': data,
        'error': error
    }
    return jsonify(response), status


def random_token(length=INVITE_TOKEN_LENGTH):
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def mask_token(token):
    """abcdef…wxyz style masking used in client-safe exports and invite lists."""
    if not token:
        return ''
    if len(token) <= 12:
        return token
    return f"{token[:6]}…{token[-4:]}"


def question_text(question):
    """
    Wording of a question row. Older question tables stored it under
    'question' or 'text' instead of 'prompt'.
    """
    if question is None:
        return ''
    if isinstance(question, dict):
        getter = question.get
    else:
        getter = lambda key: getattr(question, key, None)
    return getter('prompt') or getter('question') or getter('text') or ''


def safe_redirect_path(next_path, fallback='/dashboard'):
    """Only same-site absolute paths ('/x...' or '/'), never '//host' or full URLs."""
    if not next_path:
        return fallback
    if _SAFE_PATH_RE.match(next_path):
        return next_path
    return fallback


def legacy_redirect_target(path, args):
    """
    Maps old /admin and /dashboard URLs onto the current dashboard layout.
    `args` is the request query (a MultiDict or dict). Returns None when the
    path is current.
    """
    query = urlencode(_iter_args(args))
    suffix = f"?{query}" if query else ''

    if path == '/admin/new-run' or path.startswith('/admin/new-run/'):
        return f"/dashboard/surveys/new{suffix}"

    if path.startswith('/admin/run/'):
        parts = [p for p in path.split('/') if p]
        if len(parts) > 2 and parts[2]:
            return f"/dashboard/surveys/{parts[2]}{suffix}"

    if path in ('/admin', '/admin/'):
        return f"/dashboard{suffix}"

    match = _UUID_RESULTS_RE.match(path)
    if match:
        return f"/dashboard/surveys/{match.group(1)}/results{suffix}"

    if path == '/dashboard' and args.get('tab') == 'systems':
        remaining = [(k, v) for k, v in _iter_args(args) if k != 'tab']
        rest = f"?{urlencode(remaining)}" if remaining else ''
        return f"/dashboard{rest}#trustsys"

    return None


def _iter_args(args):
    if hasattr(args, 'getlist'):
        return list(args.items(multi=True))
    return list(args.items())


def is_protected_path(path):
    return any(path.startswith(prefix) for prefix in PROTECTED_PREFIXES)


def login_redirect_target(path, query_string=''):
    next_path = f"{path}?{query_string}" if query_string else path
    return f"/auth/login?{urlencode({'next': next_path})}"


def retry_request(retries=3, backoff_factor=0.3, status_codes=(500, 502, 503, 504)):
    """
    Decorator for retrying requests with exponential backoff.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            for i in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except requests.exceptions.RequestException as e:
                    last_exception = e
                    # Only retry if it's a server error or timeout
                    is_retryable = False
                    if getattr(e, 'response', None) is not None:
                        if e.response.status_code in status_codes:
                            is_retryable = True
                    elif isinstance(e, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
                        is_retryable = True

                    if not is_retryable or i == retries:
                        raise
                    time.sleep(backoff_factor * (2 ** i))
            raise last_exception
        return wrapper
    return decorator
