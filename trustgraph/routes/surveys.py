import hmac

from flask import Blueprint, request, current_app
from flask_login import current_user, login_required

from trustgraph.services import owner_service
from trustgraph.services.errors import ServiceError
from trustgraph.services.survey_service import SurveyService
from trustgraph.utils import api_response

surveys_bp = Blueprint('surveys', __name__)


@surveys_bp.route('/api/create-run', methods=['POST'])
def create_run():
    data = request.get_json(silent=True) or {}
    owner = current_user if current_user.is_authenticated else None
    result = SurveyService.create_run(data, owner=owner)

    response, status = api_response(data=result)
    owner_service.set_owner_cookie(response, result['runId'])
    return response, status


@surveys_bp.route('/api/try-explorer', methods=['POST'])
def try_explorer():
    """Anonymous Explorer self-assessment, claimable after sign-up."""
    run, token = SurveyService.create_explorer_run()
    current_app.logger.info(f"Explorer run {run.id} created anonymously")

    response, status = api_response(data={
        'runId': run.id,
        'token': token,
        'surveyLink': f"/survey/{token}",
    })
    owner_service.set_owner_cookie(response, run.id)
    return response, status


@surveys_bp.route('/api/claim-explorer-run', methods=['POST'])
@login_required
def claim_explorer_run():
    data = request.get_json(silent=True) or {}
    return api_response(data=SurveyService.claim_explorer_run(current_user, data))


@surveys_bp.route('/api/my-surveys', methods=['GET'])
@login_required
def my_surveys():
    return api_response(data={'surveys': SurveyService.my_surveys(current_user)})


@surveys_bp.route('/survey/<token>', methods=['GET'])
def survey(token):
    return api_response(data=SurveyService.load_survey(token))


@surveys_bp.route('/survey/<token>', methods=['POST'])
def submit_survey(token):
    data = request.get_json(silent=True) or {}
    return api_response(data=SurveyService.submit_answers(token, data.get('answers')))


@surveys_bp.route('/api/runs/<run_id>/status', methods=['PATCH'])
def update_run_status(run_id):
    run = owner_service.get_managed_run(run_id)
    data = request.get_json(silent=True) or {}
    SurveyService.set_status(run, data.get('status'))
    current_app.logger.info(f"Run {run.id} moved to {run.status}")
    return api_response(data={'run': run.to_dict()})


@surveys_bp.route('/api/runs/<run_id>/links', methods=['GET'])
def run_links(run_id):
    run = owner_service.get_managed_run(run_id)
    links = [
        {
            'token': invite.token,
            'url': f"/survey/{invite.token}",
            'completed': invite.completed,
            'team': invite.team,
            'level': invite.level,
            'location': invite.location,
        }
        for invite in run.invites
    ]
    return api_response(data={'runId': run.id, 'mode': run.mode, 'links': links})


@surveys_bp.route('/api/runs/<run_id>/unlock', methods=['POST'])
def unlock_run(run_id):
    run = owner_service.get_managed_run(run_id)
    data = request.get_json(silent=True) or {}
    code = str(data.get('code') or '').strip()
    expected = current_app.config.get('UNLOCK_CODE') or ''

    if not code or not hmac.compare_digest(code.encode('utf-8'), expected.encode('utf-8')):
        raise ServiceError('Invalid unlock code')

    response, status = api_response(data={'runId': run.id, 'unlocked': True})
    owner_service.set_unlock_cookie(response, run.id)
    return response, status
