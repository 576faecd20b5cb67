from flask import Blueprint, Response, request
from flask_login import current_user, login_required

from trustgraph.models import SYSTEM_RUN_SUBMITTED
from trustgraph.services.errors import Conflict
from trustgraph.services.pdf_service import PdfService
from trustgraph.services.system_service import SystemService
from trustgraph.utils import api_response

systems_bp = Blueprint('systems', __name__)


@systems_bp.route('/api/systems', methods=['GET'])
@login_required
def list_systems():
    return api_response(data={'systems': SystemService.list_systems(current_user)})


@systems_bp.route('/api/systems', methods=['POST'])
@login_required
def create_system():
    data = request.get_json(silent=True) or {}
    name = data.get('name') if isinstance(data.get('name'), str) else ''
    system = SystemService.create_system(
        current_user,
        name,
        version_label=data.get('version_label') if isinstance(data.get('version_label'), str) else '',
        type=data.get('type') if isinstance(data.get('type'), str) else None,
        environment=data.get('environment') if isinstance(data.get('environment'), str) else None,
    )
    return api_response(data={'system': system.to_dict()}, status=201)


@systems_bp.route('/api/systems/<system_id>', methods=['GET'])
@login_required
def get_system(system_id):
    system = SystemService.get_owned_system(current_user, system_id)
    return api_response(data={
        'system': system.to_dict(),
        'runs': [r.to_dict() for r in system.runs],
    })


@systems_bp.route('/api/systems/<system_id>', methods=['PATCH'])
@login_required
def update_system(system_id):
    data = request.get_json(silent=True) or {}
    system = SystemService.update_system(current_user, system_id, data)
    return api_response(data={'system': system.to_dict()})


@systems_bp.route('/api/systems/<system_id>', methods=['DELETE'])
@login_required
def archive_system(system_id):
    SystemService.archive_system(current_user, system_id)
    return api_response(data={'archived': True})


@systems_bp.route('/api/systems/<system_id>/runs', methods=['GET'])
@login_required
def list_runs(system_id):
    system = SystemService.get_owned_system(current_user, system_id)
    return api_response(data={'runs': [r.to_dict() for r in system.runs]})


@systems_bp.route('/api/systems/<system_id>/runs', methods=['POST'])
@login_required
def create_run(system_id):
    data = request.get_json(silent=True) or {}
    run = SystemService.create_run(current_user, system_id, data.get('version_label'))
    return api_response(data={'run': run.to_dict()}, status=201)


@systems_bp.route('/api/systems/runs/<run_id>', methods=['GET'])
@login_required
def get_run(run_id):
    return api_response(data=SystemService.run_detail(current_user, run_id))


@systems_bp.route('/api/systems/runs/<run_id>/responses', methods=['POST'])
@login_required
def save_response(run_id):
    data = request.get_json(silent=True) or {}
    response = SystemService.save_response(current_user, run_id, data)
    return api_response(data={'response': response.to_dict()})


@systems_bp.route('/api/systems/runs/<run_id>/submit', methods=['POST'])
@login_required
def submit_run(run_id):
    run, recommendations = SystemService.submit_run(current_user, run_id)
    return api_response(data={'run': run.to_dict(), 'recommendations': recommendations})


@systems_bp.route('/api/systems/runs/<run_id>/export/pdf', methods=['GET'])
@login_required
def export_run_pdf(run_id):
    run = SystemService.get_owned_run(current_user, run_id)
    if run.status != SYSTEM_RUN_SUBMITTED:
        raise Conflict('Run has not been submitted yet')

    detail = SystemService.run_detail(current_user, run_id)
    pdf_bytes = PdfService.system_run_report(run.system, run, detail['recommendations'])
    return Response(
        pdf_bytes,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'inline; filename=trustsys_{run.id}_report.pdf'}
    )
