from flask import Blueprint, redirect, request, current_app
from flask_login import login_user, logout_user, current_user
from werkzeug.security import generate_password_hash, check_password_hash

from trustgraph.models import db, get_now, User
from trustgraph.utils import (
    api_response, safe_redirect_path, legacy_redirect_target, is_protected_path, login_redirect_target,
)

auth = Blueprint('auth', __name__)


@auth.before_app_request
def route_guard():
    """
    Path rules applied before any view:
    1. Old /admin and /dashboard URLs move to the current layout
    2. Protected areas send anonymous visitors to the login page
    """
    path = request.path

    target = legacy_redirect_target(path, request.args)
    if target:
        return redirect(target, code=307)

    if is_protected_path(path) and not current_user.is_authenticated:
        query = request.query_string.decode('utf-8', 'replace')
        return redirect(login_redirect_target(path, query), code=307)


def _credentials():
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    next_path = data.get('next') or request.args.get('next')
    return data, email, password, next_path


@auth.route('/auth/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        next_path = safe_redirect_path(request.args.get('next'))
        if current_user.is_authenticated:
            return redirect(next_path)
        return api_response(data={'next': next_path})

    data, email, password, next_path = _credentials()
    next_path = safe_redirect_path(next_path)
    if not email or not password:
        return api_response(success=False, error='Email and password are required', status=400)

    # 1. Try Supabase Login
    supabase_user = None
    supabase = getattr(current_app, 'supabase', None)
    if supabase is not None:
        try:
            res = supabase.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
            supabase_user = res.user
        except Exception as e:
            current_app.logger.info(f"Supabase sign-in rejected for {email}: {e}")

    # 2. Local User Lookup
    user = User.query.filter_by(email=email).first()

    authenticated = False
    if supabase_user:
        authenticated = True
        if user is None:
            user = User(email=email, supabase_uid=supabase_user.id)
            db.session.add(user)
        elif not user.supabase_uid:
            user.supabase_uid = supabase_user.id
    elif user and user.password_hash and check_password_hash(user.password_hash, password):
        authenticated = True

    if not authenticated or user is None:
        current_app.logger.warning(f"Login failed for {email}")
        return api_response(success=False, error='Invalid email or password', status=401)

    if not user.is_active:
        return api_response(success=False, error='This account has been deleted', status=403)

    user.last_login = get_now()
    db.session.commit()
    login_user(user, remember=bool(data.get('remember')))
    current_app.logger.info(f"Login success: {user.email}")

    if request.is_json:
        return api_response(data={'user': user.to_dict(), 'next': next_path})
    return redirect(next_path)


@auth.route('/auth/register', methods=['POST'])
def register():
    data, email, password, next_path = _credentials()
    if not email or not password:
        return api_response(success=False, error='Email and password are required', status=400)
    if len(password) < 8:
        return api_response(success=False, error='Password must be at least 8 characters', status=400)
    if User.query.filter_by(email=email).first():
        return api_response(success=False, error='An account with this email already exists', status=409)

    supabase_uid = None
    supabase = getattr(current_app, 'supabase', None)
    if supabase is not None:
        try:
            res = supabase.auth.sign_up({"email": email, "password": password})
            if res.user:
                supabase_uid = res.user.id
        except Exception as e:
            current_app.logger.error(f"Supabase sign-up failed for {email}: {e}")
            return api_response(success=False, error=str(e), status=400)

    user = User(
        email=email,
        supabase_uid=supabase_uid,
        password_hash=generate_password_hash(password),
        full_name=(data.get('full_name') or '').strip() or None,
        company_name=(data.get('company_name') or '').strip() or None,
    )
    db.session.add(user)
    db.session.commit()
    login_user(user)
    current_app.logger.info(f"Registered user {user.id} ({email})")
    return api_response(data={'user': user.to_dict(), 'next': safe_redirect_path(next_path)}, status=201)


@auth.route('/auth/logout', methods=['GET', 'POST'])
def logout():
    logout_user()
    if request.method == 'GET':
        return redirect('/')
    return api_response(data={'ok': True})
