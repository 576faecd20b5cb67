from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
import uuid

def get_now():
    """Naive UTC timestamp, the format every column below is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def new_uuid():
    return str(uuid.uuid4())

def iso(value):
    return value.isoformat() if value else None

db = SQLAlchemy()

# Enums (plain strings keep SQLite and Postgres schemas identical)
PLAN_EXPLORER = 'explorer'
PLAN_PRO = 'pro'
PLAN_ENTERPRISE = 'enterprise'

MODE_EXPLORER = 'explorer'
MODE_ORG = 'org'

RUN_STATUS_DRAFT = 'draft'
RUN_STATUS_LIVE = 'live'
RUN_STATUS_CLOSED = 'closed'

SYSTEM_RUN_DRAFT = 'draft'
SYSTEM_RUN_SUBMITTED = 'submitted'


class User(UserMixin, db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    supabase_uid = db.Column(db.String(100), unique=True, nullable=True)
    password_hash = db.Column(db.String(200), nullable=True)
    plan = db.Column(db.String(20), nullable=False, default=PLAN_EXPLORER)

    # Profile Fields
    full_name = db.Column(db.String(200), nullable=True)
    company_name = db.Column(db.String(200), nullable=True)
    company_size = db.Column(db.String(200), nullable=True)
    role = db.Column(db.String(200), nullable=True)

    # Billing
    stripe_customer_id = db.Column(db.String(100), nullable=True)
    stripe_subscription_id = db.Column(db.String(100), nullable=True, index=True)

    suspended_at = db.Column(db.DateTime, nullable=True)
    suspended_reason = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=get_now)
    last_login = db.Column(db.DateTime, nullable=True)

    survey_runs = db.relationship('SurveyRun', backref='owner', lazy=True)
    systems = db.relationship('System', backref='owner', lazy=True)

    @property
    def is_active(self):
        return self.suspended_at is None

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'plan': self.plan,
            'full_name': self.full_name,
            'company_name': self.company_name,
            'company_size': self.company_size,
            'role': self.role,
            'created_at': iso(self.created_at),
        }


class Organisation(db.Model):
    __tablename__ = 'organisations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=get_now)

    survey_runs = db.relationship('SurveyRun', backref='organisation', lazy=True)


class SurveyRun(db.Model):
    __tablename__ = 'survey_runs'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    organisation_id = db.Column(db.Integer, db.ForeignKey('organisations.id'), nullable=False)
    owner_user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    mode = db.Column(db.String(20), nullable=False, default=MODE_ORG)
    status = db.Column(db.String(20), nullable=False, default=RUN_STATUS_LIVE)
    opens_at = db.Column(db.DateTime, default=get_now)
    closes_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=get_now)

    invites = db.relationship('Invite', backref='run', lazy=True, cascade='all, delete-orphan',
                              order_by='Invite.id')
    admin_tokens = db.relationship('RunAdminToken', backref='run', lazy=True, cascade='all, delete-orphan')

    @property
    def is_explorer(self):
        return self.mode == MODE_EXPLORER

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'mode': self.mode,
            'status': self.status,
            'organisation': self.organisation.name if self.organisation else None,
            'owner_user_id': self.owner_user_id,
            'created_at': iso(self.opens_at or self.created_at),
        }


class Invite(db.Model):
    __tablename__ = 'invites'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(36), db.ForeignKey('survey_runs.id'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False)

    # Segmentation
    team = db.Column(db.String(100), nullable=True)
    level = db.Column(db.String(100), nullable=True)
    location = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=get_now)
    used_at = db.Column(db.DateTime, nullable=True)

    @property
    def completed(self):
        return self.used_at is not None


class RunAdminToken(db.Model):
    __tablename__ = 'run_admin_tokens'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(36), db.ForeignKey('survey_runs.id'), nullable=False, index=True)
    token = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=get_now)


class Question(db.Model):
    __tablename__ = 'questions'

    id = db.Column(db.String(40), primary_key=True)
    dimension = db.Column(db.String(100), nullable=False)
    prompt = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'dimension': self.dimension,
            'prompt': self.prompt,
            'sort_order': self.sort_order,
        }


class Response(db.Model):
    __tablename__ = 'responses'
    __table_args__ = (
        db.UniqueConstraint('run_id', 'invite_token', 'question_id', name='uq_response_run_invite_question'),
    )

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(36), db.ForeignKey('survey_runs.id'), nullable=False, index=True)
    invite_token = db.Column(db.String(64), nullable=False, index=True)
    question_id = db.Column(db.String(40), db.ForeignKey('questions.id'), nullable=False)
    value = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=get_now)

    question = db.relationship('Question', lazy='joined')


class System(db.Model):
    __tablename__ = 'systems'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    owner_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    version_label = db.Column(db.String(100), nullable=True, default='')
    type = db.Column(db.String(100), nullable=True)
    environment = db.Column(db.String(100), nullable=True)
    archived = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=get_now)

    runs = db.relationship('SystemRun', backref='system', lazy=True, cascade='all, delete-orphan',
                           order_by='SystemRun.created_at.desc()')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'version_label': self.version_label,
            'type': self.type,
            'environment': self.environment,
            'archived': self.archived,
            'created_at': iso(self.created_at),
        }


class SystemRun(db.Model):
    __tablename__ = 'system_runs'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    system_id = db.Column(db.String(36), db.ForeignKey('systems.id'), nullable=False, index=True)
    version_label = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=SYSTEM_RUN_DRAFT)
    question_set_version = db.Column(db.String(10), nullable=False, default='v1')
    overall_score = db.Column(db.Integer, nullable=True)
    dimension_scores = db.Column(db.JSON, nullable=True)
    risk_flags = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=get_now)
    submitted_at = db.Column(db.DateTime, nullable=True)

    responses = db.relationship('SystemResponse', backref='run', lazy=True, cascade='all, delete-orphan',
                                order_by='SystemResponse.created_at')
    recommendations = db.relationship('SystemRecommendation', backref='run', lazy=True,
                                      cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'system_id': self.system_id,
            'version_label': self.version_label,
            'status': self.status,
            'question_set_version': self.question_set_version,
            'overall_score': self.overall_score,
            'dimension_scores': self.dimension_scores,
            'risk_flags': self.risk_flags,
            'created_at': iso(self.created_at),
            'submitted_at': iso(self.submitted_at),
        }


class SystemResponse(db.Model):
    __tablename__ = 'system_responses'
    __table_args__ = (
        db.UniqueConstraint('run_id', 'question_id', name='uq_system_response_run_question'),
    )

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(36), db.ForeignKey('system_runs.id'), nullable=False, index=True)
    question_id = db.Column(db.String(20), nullable=False)
    answer = db.Column(db.JSON, nullable=False)
    evidence = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=get_now)

    def to_dict(self):
        return {
            'id': self.id,
            'run_id': self.run_id,
            'question_id': self.question_id,
            'answer': self.answer,
            'evidence': self.evidence,
            'created_at': iso(self.created_at),
        }


class SystemRecommendation(db.Model):
    __tablename__ = 'system_recommendations'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(36), db.ForeignKey('system_runs.id'), nullable=False, index=True)
    question_id = db.Column(db.String(20), nullable=False)
    dimension = db.Column(db.String(50), nullable=False)
    control = db.Column(db.String(200), nullable=False)
    priority = db.Column(db.String(10), nullable=False) # high, med
    recommendation = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=get_now)

    def to_dict(self):
        return {
            'id': self.id,
            'question_id': self.question_id,
            'dimension': self.dimension,
            'control': self.control,
            'priority': self.priority,
            'recommendation': self.recommendation,
            'created_at': iso(self.created_at),
        }


class BillingEvent(db.Model):
    __tablename__ = 'billing_events'

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True) # Nullable if we can't identify the user yet
    event_type = db.Column(db.String(100), nullable=False) # checkout.session.completed, customer.subscription.deleted
    payload = db.Column(db.JSON, nullable=True) # Full webhook payload
    stripe_event_id = db.Column(db.String(100), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, default=get_now)
