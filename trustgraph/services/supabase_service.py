import jwt
from flask import current_app
from supabase import create_client

SUPABASE_JWT_AUDIENCE = 'authenticated'


def init_supabase(app):
    url = app.config.get('SUPABASE_URL')
    # Service role key for backend operations, anon key otherwise
    key = app.config.get('SUPABASE_SERVICE_ROLE_KEY') or app.config.get('SUPABASE_KEY')

    if not url or not key:
        return None

    return create_client(url, key)


def decode_access_token(token):
    """
    Returns the claims of a Supabase access token, or None when the token is
    missing, expired or signed with another secret.
    """
    secret = current_app.config.get('SUPABASE_JWT_SECRET')
    if not token or not secret:
        return None
    try:
        return jwt.decode(token, secret, algorithms=['HS256'], audience=SUPABASE_JWT_AUDIENCE)
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Supabase access token expired")
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Invalid Supabase access token: {e}")
    return None


def bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return None
