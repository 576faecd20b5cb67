import os
import logging

from dotenv import load_dotenv
from flask import Flask, request
from flask_login import LoginManager
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from trustgraph.models import db, User
from trustgraph.services.errors import ServiceError
from trustgraph.services.supabase_service import init_supabase, decode_access_token, bearer_token
from trustgraph.utils import api_response

load_dotenv()  # Load env vars before anything else


def _database_url():
    database_url = os.environ.get('DATABASE_URL')
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    if not database_url:
        database_url = 'sqlite:////tmp/trustgraph.db'
    return database_url


def load_config(app):
    env = os.environ.get
    app.config['ENV_NAME'] = env('APP_ENV', 'development')
    app.config['SECRET_KEY'] = env('SECRET_KEY', 'trustgraph-dev-secret-key')
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_url()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Supabase
    app.config['SUPABASE_URL'] = env('SUPABASE_URL')
    app.config['SUPABASE_KEY'] = env('SUPABASE_KEY')
    app.config['SUPABASE_SERVICE_ROLE_KEY'] = env('SUPABASE_SERVICE_ROLE_KEY')
    app.config['SUPABASE_JWT_SECRET'] = env('SUPABASE_JWT_SECRET')

    # Stripe
    app.config['STRIPE_SECRET_KEY'] = env('STRIPE_SECRET_KEY')
    app.config['STRIPE_WEBHOOK_SECRET'] = env('STRIPE_WEBHOOK_SECRET')
    app.config['STRIPE_PRO_MONTHLY_PRICE_ID'] = env('STRIPE_PRO_MONTHLY_PRICE_ID')
    app.config['STRIPE_PRO_YEARLY_PRICE_ID'] = env('STRIPE_PRO_YEARLY_PRICE_ID')

    # Product
    app.config['SITE_URL'] = env('SITE_URL', 'http://localhost:5000')
    app.config['UNLOCK_CODE'] = env('UNLOCK_CODE', 'DEMO-UNLOCK')
    app.config['MIN_ORG_RESPONDENTS'] = int(env('MIN_ORG_RESPONDENTS', '5'))
    app.config['DASHBOARD_POLL_SECONDS'] = int(env('DASHBOARD_POLL_SECONDS', '600'))

    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['SESSION_COOKIE_SECURE'] = app.config['ENV_NAME'] == 'production'


def create_app(test_config=None):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # --- CONFIGURATION ---
    load_config(app)
    if test_config:
        app.config.update(test_config)

    if not app.debug and not app.testing:
        app.logger.setLevel(logging.INFO)

    # Supabase Setup
    try:
        app.supabase = init_supabase(app)
    except Exception as supabase_e:
        app.logger.error(f"Supabase Init Error: {supabase_e}")
        app.supabase = None
    if app.supabase is None:
        app.logger.info("Supabase not configured, using local password auth only")

    # --- INITIALIZE EXTENSIONS ---
    db.init_app(app)
    Migrate(app, db)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(req):
        claims = decode_access_token(bearer_token(req))
        if not claims or not claims.get('sub'):
            return None
        user = User.query.filter_by(supabase_uid=claims['sub']).first()
        if user is None and claims.get('email'):
            user = User.query.filter_by(email=claims['email'].lower()).first()
            if user is not None and not user.supabase_uid:
                user.supabase_uid = claims['sub']
                db.session.commit()
        return user if user is not None and user.is_active else None

    @login_manager.unauthorized_handler
    def unauthorized():
        return api_response(success=False, error='Not authenticated', status=401)

    # --- ERROR HANDLERS ---
    @app.errorhandler(ServiceError)
    def service_error(error):
        data = dict(error.extra) if error.extra else None
        if error.code:
            data = data or {}
            data['code'] = error.code
        return api_response(success=False, data=data, error=error.message, status=error.status)

    @app.errorhandler(HTTPException)
    def http_error(error):
        return api_response(success=False, error=error.description, status=error.code)

    @app.errorhandler(Exception)
    def internal_error(error):
        # Fail-safe rollback
        db.session.rollback()
        app.logger.exception(f"Unhandled error on {request.method} {request.path}: {error}")
        return api_response(success=False, error='Internal server error', status=500)

    # --- REGISTER BLUEPRINTS ---
    from trustgraph.auth import auth as auth_blueprint
    from trustgraph.routes.surveys import surveys_bp
    from trustgraph.routes.owner import owner_bp
    from trustgraph.routes.dashboard import dashboard_bp
    from trustgraph.routes.systems import systems_bp
    from trustgraph.routes.settings import settings_bp
    from trustgraph.routes.billing import billing_bp
    from trustgraph.routes.history import history_bp

    app.register_blueprint(auth_blueprint)
    app.register_blueprint(surveys_bp)
    app.register_blueprint(owner_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(systems_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(history_bp)

    # --- TABLE CREATION ---
    with app.app_context():
        from trustgraph.services.survey_service import SurveyService
        db.create_all()
        seeded = SurveyService.seed_questions()
        if seeded:
            app.logger.info(f"Seeded {seeded} survey questions")

    return app
