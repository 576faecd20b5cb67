import math

from flask import current_app

from trustgraph.models import (
    db, get_now, Organisation, SurveyRun, Invite, RunAdminToken, Question, Response,
    MODE_EXPLORER, MODE_ORG, RUN_STATUS_DRAFT, RUN_STATUS_LIVE, RUN_STATUS_CLOSED,
)
from trustgraph.question_bank import ORG_QUESTIONS
from trustgraph.services import entitlements_service
from trustgraph.services.errors import ServiceError, NotFound, NotAuthorised, Conflict, PlanLimitReached
from trustgraph.services.scoring_service import ScoringService, org_threshold
from trustgraph.utils import random_token, INVITE_TOKEN_LENGTH, OWNER_TOKEN_LENGTH

MAX_INVITES = 500
EXPLORER_ORG_NAME = 'Self-Assessment'

# Allowed manual status moves
STATUS_TRANSITIONS = {
    RUN_STATUS_DRAFT: (RUN_STATUS_LIVE, RUN_STATUS_CLOSED),
    RUN_STATUS_LIVE: (RUN_STATUS_CLOSED,),
    RUN_STATUS_CLOSED: (),
}


def normalise_invite_count(raw, mode):
    default = 1 if mode == MODE_EXPLORER else 10
    try:
        value = float(raw or default)
    except (TypeError, ValueError):
        raise ServiceError('inviteCount must be a number')
    if math.isnan(value):
        raise ServiceError('inviteCount must be a number')
    return math.floor(max(1.0, min(float(MAX_INVITES), value)))


def _segment(value):
    return str(value) if value else None


class SurveyService:
    @staticmethod
    def seed_questions():
        """Inserts the organisational question bank when the table is empty."""
        if Question.query.first():
            return 0
        for q in ORG_QUESTIONS:
            db.session.add(Question(**q))
        db.session.commit()
        return len(ORG_QUESTIONS)

    @staticmethod
    def find_or_create_organisation(name):
        org = Organisation.query.filter_by(name=name).first()
        if org:
            return org
        org = Organisation(name=name)
        db.session.add(org)
        db.session.flush()
        return org

    @staticmethod
    def _unique_token(length):
        while True:
            token = random_token(length)
            if not Invite.query.filter_by(token=token).first():
                return token

    @staticmethod
    def create_run(payload, owner=None):
        """
        Creates organisation (find-or-create by name), run, invites and owner token.
        Returns a dict shaped for the create-run endpoint.
        """
        org_name = str(payload.get('orgName') or '').strip()
        run_title = str(payload.get('runTitle') or '').strip()
        mode = MODE_EXPLORER if payload.get('mode') == MODE_EXPLORER else MODE_ORG
        invite_count = normalise_invite_count(payload.get('inviteCount'), mode)

        if not org_name:
            raise ServiceError('orgName is required')
        if not run_title:
            raise ServiceError('runTitle is required')
        if mode == MODE_EXPLORER and invite_count != 1:
            raise ServiceError('Explorer mode must have inviteCount = 1')
        if mode == MODE_ORG and invite_count < org_threshold():
            raise ServiceError(f"Organisational mode requires inviteCount >= {org_threshold()}")

        if owner is not None:
            count = entitlements_service.user_survey_count(owner.id)
            if not entitlements_service.can_create_survey(owner.plan, count):
                raise PlanLimitReached(entitlements_service.survey_cap_message(owner.plan))

        try:
            org = SurveyService.find_or_create_organisation(org_name)
            run = SurveyRun(
                organisation_id=org.id,
                owner_user_id=owner.id if owner is not None else None,
                title=run_title,
                status=RUN_STATUS_LIVE,
                opens_at=get_now(),
                mode=mode,
            )
            db.session.add(run)
            db.session.flush()

            tokens = [SurveyService._unique_token(INVITE_TOKEN_LENGTH) for _ in range(invite_count)]
            for token in tokens:
                db.session.add(Invite(
                    run_id=run.id,
                    token=token,
                    team=_segment(payload.get('team')),
                    level=_segment(payload.get('level')),
                    location=_segment(payload.get('location')),
                ))

            owner_token = random_token(OWNER_TOKEN_LENGTH)
            db.session.add(RunAdminToken(run_id=run.id, token=owner_token))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"Survey run {run.id} created ({mode}, {invite_count} invites)")
        return {
            'runId': run.id,
            'tokens': tokens,
            'mode': mode,
            'ownerToken': owner_token,
            'surveyLinks': [f"/survey/{t}" for t in tokens],
            'dashboardLink': f"/dashboard/{run.id}",
        }

    @staticmethod
    def create_explorer_run():
        """Anonymous self-assessment; claimed later through claim_explorer_run."""
        try:
            org = SurveyService.find_or_create_organisation(EXPLORER_ORG_NAME)
            now = get_now()
            run = SurveyRun(
                organisation_id=org.id,
                title=f"Explorer Self-Assessment – {now.date().isoformat()}",
                status=RUN_STATUS_LIVE,
                opens_at=now,
                mode=MODE_EXPLORER,
            )
            db.session.add(run)
            db.session.flush()
            token = SurveyService._unique_token(INVITE_TOKEN_LENGTH)
            db.session.add(Invite(run_id=run.id, token=token))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return run, token

    @staticmethod
    def claim_explorer_run(user, payload):
        run_id = payload.get('runId')
        if not run_id:
            raise ServiceError('runId is required')

        run = db.session.get(SurveyRun, str(run_id))
        if not run:
            raise NotFound('Survey not found')

        if run.owner_user_id:
            if run.owner_user_id == user.id:
                return {'ok': True, 'alreadyClaimed': True}
            raise NotAuthorised('This survey is already linked to another account')

        run.owner_user_id = user.id

        profile_fields = {
            'fullName': 'full_name',
            'companyName': 'company_name',
            'companySize': 'company_size',
            'role': 'role',
        }
        for key, column in profile_fields.items():
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                setattr(user, column, value.strip())

        db.session.commit()
        current_app.logger.info(f"Run {run.id} claimed by user {user.id}")
        return {'ok': True}

    @staticmethod
    def my_surveys(user):
        runs = SurveyRun.query.filter_by(owner_user_id=user.id) \
            .order_by(SurveyRun.opens_at.desc()).all()
        counts = ScoringService.counts_for_runs([r.id for r in runs])
        surveys = []
        for run in runs:
            c = counts.get(run.id, {})
            item = run.to_dict()
            item['respondents'] = c.get('respondents', 0)
            item['answers'] = c.get('answers', 0)
            surveys.append(item)
        return surveys

    @staticmethod
    def get_invite(token):
        invite = Invite.query.filter_by(token=token).first()
        if not invite:
            raise NotFound('Invalid or expired survey link.')
        return invite

    @staticmethod
    def questions():
        return Question.query.order_by(Question.sort_order.asc()).all()

    @staticmethod
    def load_survey(token):
        invite = SurveyService.get_invite(token)
        run = invite.run
        return {
            'run_id': run.id,
            'title': run.title,
            'mode': run.mode,
            'status': run.status,
            'completed': invite.completed,
            'questions': [q.to_dict() for q in SurveyService.questions()],
        }

    @staticmethod
    def submit_answers(token, answers):
        invite = SurveyService.get_invite(token)
        run = invite.run
        if run.status == RUN_STATUS_CLOSED:
            raise Conflict('This survey is closed.')

        if not isinstance(answers, dict):
            raise ServiceError('answers must be an object')

        questions = SurveyService.questions()
        if not questions:
            raise ServiceError('No questions found.')

        missing = [q.id for q in questions if answers.get(q.id) is None]
        if missing:
            raise ServiceError(
                f"Please answer {len(missing)} required questions.",
                extra={'missing': missing},
            )

        values = {}
        for q in questions:
            value = answers[q.id]
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise ServiceError(f"Invalid value for {q.id}")
            try:
                number = int(value)
            except (TypeError, ValueError, OverflowError):
                raise ServiceError(f"Invalid value for {q.id}")
            if number != float(value) or not 1 <= number <= 5:
                raise ServiceError(f"Value for {q.id} must be between 1 and 5")
            values[q.id] = number

        try:
            existing = {
                r.question_id: r
                for r in Response.query.filter_by(run_id=run.id, invite_token=invite.token).all()
            }
            for question_id, value in values.items():
                row = existing.get(question_id)
                if row:
                    row.value = value
                else:
                    db.session.add(Response(
                        run_id=run.id,
                        invite_token=invite.token,
                        question_id=question_id,
                        value=value,
                    ))
            invite.used_at = get_now()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"Responses submitted for run {run.id}")
        return {'run_id': run.id, 'answered': len(values)}

    @staticmethod
    def set_status(run, status):
        if status not in STATUS_TRANSITIONS:
            raise ServiceError('Invalid status')
        if status == run.status:
            return run
        if status not in STATUS_TRANSITIONS[run.status]:
            raise Conflict(f"Cannot move a {run.status} run to {status}")
        run.status = status
        if status == RUN_STATUS_CLOSED:
            run.closes_at = get_now()
        db.session.commit()
        return run

    @staticmethod
    def validate_owner_token(run_id, token):
        if not run_id or not token:
            return False
        return RunAdminToken.query.filter_by(run_id=run_id, token=token).first() is not None

    @staticmethod
    def resolve_owner_token(token):
        row = RunAdminToken.query.filter_by(token=token).first()
        if not row:
            raise NotFound('Token not found')
        return row.run_id
