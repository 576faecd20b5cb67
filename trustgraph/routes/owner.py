from urllib.parse import urlencode

from flask import Blueprint, request, redirect, current_app

from trustgraph.services import owner_service
from trustgraph.services.errors import ServiceError, NotAuthorised
from trustgraph.services.survey_service import SurveyService
from trustgraph.utils import api_response, safe_redirect_path

owner_bp = Blueprint('owner', __name__)


def _owner_login_url(run_id):
    return f"/?{urlencode({'auth': 'required', 'role': 'owner', 'runId': run_id or ''})}"


@owner_bp.route('/api/auth-owner', methods=['GET'])
def auth_owner_link():
    """Owner link: validates the token, sets the cookie and forwards to the run."""
    run_id = request.args.get('runId')
    owner_token = request.args.get('ownerToken')

    if not SurveyService.validate_owner_token(run_id, owner_token):
        current_app.logger.warning(f"Owner link rejected for run {run_id}")
        return redirect(_owner_login_url(run_id))

    next_path = safe_redirect_path(request.args.get('next'), fallback=f"/dashboard/surveys/{run_id}")
    response = redirect(next_path)
    owner_service.set_owner_cookie(response, run_id)
    return response


@owner_bp.route('/api/auth-owner', methods=['POST'])
def auth_owner():
    data = request.get_json(silent=True) or {}
    run_id = str(data.get('runId') or '')
    token = str(data.get('token') or '')
    if not run_id or not token:
        raise ServiceError('Missing runId or token')

    if not SurveyService.validate_owner_token(run_id, token):
        raise NotAuthorised('Invalid owner token')

    response, status = api_response(data={'ok': True, 'runId': run_id})
    owner_service.set_owner_cookie(response, run_id)
    return response, status


@owner_bp.route('/api/admin-token-check', methods=['GET'])
def admin_token_check():
    # Diagnostic only: never echoes the token back
    data = {'found': False, 'runIdCol': 'run_id', 'tokenCol': 'token'}
    try:
        data['found'] = SurveyService.validate_owner_token(
            request.args.get('runId', ''), request.args.get('token', ''))
    except Exception as e:
        current_app.logger.error(f"Admin token check failed: {e}")
        data['error'] = str(e)
    return api_response(data=data)


@owner_bp.route('/api/resolve-owner', methods=['POST'])
def resolve_owner():
    data = request.get_json(silent=True) or {}
    token = str(data.get('token') or '')
    if not token:
        raise ServiceError('Missing token')
    return api_response(data={'ok': True, 'runId': SurveyService.resolve_owner_token(token)})
