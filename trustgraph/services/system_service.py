from flask import current_app

from trustgraph.models import (
    db, get_now, System, SystemRun, SystemResponse, SystemRecommendation,
    SYSTEM_RUN_DRAFT, SYSTEM_RUN_SUBMITTED,
)
from trustgraph.question_bank import SYSTEM_QUESTIONS, SYSTEM_QUESTIONS_BY_ID, QUESTION_SET_VERSION
from trustgraph.services import entitlements_service
from trustgraph.services import system_scoring_service as scoring
from trustgraph.services.errors import ServiceError, NotFound, NotAuthorised, Conflict, PlanLimitReached


class SystemService:
    @staticmethod
    def list_systems(user):
        systems = System.query.filter_by(owner_id=user.id, archived=False) \
            .order_by(System.created_at.desc()).all()
        if not systems:
            return []

        system_ids = [s.id for s in systems]
        runs = SystemRun.query.filter(
            SystemRun.system_id.in_(system_ids),
            SystemRun.status == SYSTEM_RUN_SUBMITTED,
        ).order_by(SystemRun.created_at.desc()).all()

        latest = {}
        counts = {}
        for run in runs:
            counts[run.system_id] = counts.get(run.system_id, 0) + 1
            latest.setdefault(run.system_id, run.overall_score)

        result = []
        for s in systems:
            item = s.to_dict()
            item['latest_score'] = latest.get(s.id)
            item['assessment_count'] = counts.get(s.id, 0)
            result.append(item)
        return result

    @staticmethod
    def create_system(user, name, version_label='', type=None, environment=None):
        name = (name or '').strip()
        if not name:
            raise ServiceError('name is required')

        count = entitlements_service.user_system_count(user.id)
        if not entitlements_service.can_create_system(user.plan, count):
            raise PlanLimitReached(entitlements_service.system_cap_message(user.plan))

        system = System(
            owner_id=user.id,
            name=name,
            version_label=(version_label or '').strip(),
            type=type,
            environment=environment,
        )
        db.session.add(system)
        db.session.commit()
        current_app.logger.info(f"System {system.id} created by user {user.id}")
        return system

    @staticmethod
    def get_owned_system(user, system_id):
        system = db.session.get(System, system_id)
        if not system:
            raise NotFound('System not found')
        if system.owner_id != user.id:
            raise NotAuthorised('Not authorised')
        return system

    @staticmethod
    def update_system(user, system_id, payload):
        system = SystemService.get_owned_system(user, system_id)
        updated = False

        name = payload.get('name')
        if isinstance(name, str) and name.strip():
            system.name = name.strip()
            updated = True
        for field in ('version_label', 'type', 'environment'):
            value = payload.get(field)
            if isinstance(value, str):
                setattr(system, field, value.strip())
                updated = True

        if not updated:
            raise ServiceError('No valid fields to update')
        db.session.commit()
        return system

    @staticmethod
    def archive_system(user, system_id):
        system = SystemService.get_owned_system(user, system_id)
        system.archived = True
        db.session.commit()
        return system

    @staticmethod
    def create_run(user, system_id, version_label=None):
        system = SystemService.get_owned_system(user, system_id)
        if isinstance(version_label, str):
            version_label = version_label.strip() or None
        else:
            version_label = None

        run = SystemRun(
            system_id=system.id,
            version_label=version_label,
            status=SYSTEM_RUN_DRAFT,
            question_set_version=QUESTION_SET_VERSION,
        )
        db.session.add(run)
        db.session.commit()
        return run

    @staticmethod
    def get_owned_run(user, run_id):
        run = db.session.get(SystemRun, run_id)
        if not run:
            raise NotFound('Run not found')
        if not run.system or run.system.owner_id != user.id:
            raise NotAuthorised('Not authorised')
        return run

    @staticmethod
    def get_draft_run(user, run_id):
        run = db.session.get(SystemRun, run_id)
        if not run:
            raise NotFound('Run not found')
        if run.status != SYSTEM_RUN_DRAFT:
            raise Conflict('Run has already been submitted')
        if not run.system or run.system.owner_id != user.id:
            raise NotAuthorised('Not authorised')
        return run

    @staticmethod
    def run_detail(user, run_id):
        run = SystemService.get_owned_run(user, run_id)
        recommendations = []
        if run.status == SYSTEM_RUN_SUBMITTED:
            recs = sorted(run.recommendations, key=lambda r: (r.priority != 'high', r.question_id))
            recommendations = [r.to_dict() for r in recs]
        return {
            'run': run.to_dict(),
            'responses': [r.to_dict() for r in run.responses],
            'recommendations': recommendations,
        }

    @staticmethod
    def save_response(user, run_id, payload):
        run = SystemService.get_draft_run(user, run_id)

        question_id = payload.get('question_id')
        if not isinstance(question_id, str) or question_id not in SYSTEM_QUESTIONS_BY_ID:
            raise ServiceError('Invalid question_id')

        answer = payload.get('answer')
        if not isinstance(answer, dict):
            raise ServiceError('answer is required and must be an object')

        evidence = payload.get('evidence')
        if evidence is not None and not isinstance(evidence, dict):
            raise ServiceError('evidence must be an object')

        response = SystemResponse.query.filter_by(run_id=run.id, question_id=question_id).first()
        if response:
            response.answer = answer
            response.evidence = evidence
        else:
            response = SystemResponse(run_id=run.id, question_id=question_id, answer=answer, evidence=evidence)
            db.session.add(response)
        db.session.commit()
        return response

    @staticmethod
    def answers_for_run(run):
        answers = {}
        for r in run.responses:
            answer = dict(r.answer or {})
            if r.evidence is not None:
                answer['evidence'] = r.evidence
            answers[r.question_id] = answer
        return answers

    @staticmethod
    def submit_run(user, run_id):
        run = SystemService.get_draft_run(user, run_id)

        answered = {r.question_id for r in run.responses}
        missing = [q['id'] for q in SYSTEM_QUESTIONS if q['id'] not in answered]
        if missing:
            raise ServiceError(
                f"Missing responses for {len(missing)} question(s)",
                extra={'missing': missing},
            )

        answers = SystemService.answers_for_run(run)
        dimension_scores, overall = scoring.compute_all_scores(answers)
        risk_flags = scoring.compute_risk_flags(answers)
        recommendations = scoring.generate_recommendations(answers)

        try:
            for rec in recommendations:
                db.session.add(SystemRecommendation(run_id=run.id, **rec))

            run.status = SYSTEM_RUN_SUBMITTED
            run.submitted_at = get_now()
            run.overall_score = overall
            run.dimension_scores = dimension_scores
            run.risk_flags = risk_flags
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"System run {run.id} submitted: overall={overall}, flags={[f['code'] for f in risk_flags]}"
        )
        return run, recommendations
