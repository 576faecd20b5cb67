from flask import Blueprint, request

from trustgraph.models import get_now
from trustgraph.services.errors import ServiceError
from trustgraph.services.history_service import HistoryService
from trustgraph.utils import api_response

history_bp = Blueprint('history', __name__)


def _payload(service, history):
    return {'runs': history, 'rememberDevice': service.remember_device}


@history_bp.route('/api/history', methods=['GET'])
def get_history():
    service = HistoryService()
    return api_response(data=_payload(service, service.get_history()))


@history_bp.route('/api/history', methods=['POST'])
def add_history():
    data = request.get_json(silent=True) or {}
    run_id = data.get('runId')
    if not run_id or not isinstance(run_id, str):
        raise ServiceError('runId is required')

    entry = {
        'runId': run_id,
        'title': str(data.get('title') or ''),
        'mode': data.get('mode') if data.get('mode') in ('explorer', 'org') else 'org',
        'createdAtISO': str(data.get('createdAtISO') or get_now().isoformat() + 'Z'),
    }
    service = HistoryService()
    return api_response(data=_payload(service, service.add(entry)))


@history_bp.route('/api/history', methods=['DELETE'])
def clear_history():
    service = HistoryService()
    service.clear()
    return api_response(data=_payload(service, []))


@history_bp.route('/api/history/remember-device', methods=['POST'])
def remember_device():
    data = request.get_json(silent=True) or {}
    service = HistoryService()
    history = service.set_remember_device(bool(data.get('enabled')))
    return api_response(data=_payload(service, history))
