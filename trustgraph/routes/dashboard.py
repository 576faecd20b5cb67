from flask import Blueprint, Response, current_app, request
from flask_login import current_user, login_required

from trustgraph.models import db, Response as SurveyResponse
from trustgraph.services import entitlements_service, owner_service
from trustgraph.services.export_service import ExportService, responses_filename, summary_filename
from trustgraph.services.pdf_service import PdfService
from trustgraph.services.results_service import ResultsService
from trustgraph.services.scoring_service import ScoringService
from trustgraph.services.survey_service import SurveyService
from trustgraph.services.system_service import SystemService
from trustgraph.utils import api_response, mask_token

dashboard_bp = Blueprint('dashboard', __name__)


def _flag(name, default):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


def _csv_response(content, filename):
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-disposition": f"attachment; filename={filename}"}
    )


@dashboard_bp.route('/dashboard', methods=['GET'])
@login_required
def home():
    return api_response(data={
        'surveys': SurveyService.my_surveys(current_user),
        'systems': SystemService.list_systems(current_user),
        'limits': entitlements_service.limits_payload(current_user.plan),
        'poll_interval_seconds': current_app.config['DASHBOARD_POLL_SECONDS'],
    })


@dashboard_bp.route('/dashboard/surveys/new', methods=['GET'])
@login_required
def new_survey():
    count = entitlements_service.user_survey_count(current_user.id)
    return api_response(data={
        'limits': entitlements_service.limits_payload(current_user.plan),
        'survey_count': count,
        'can_create': entitlements_service.can_create_survey(current_user.plan, count),
        'defaults': {'mode': 'org', 'inviteCount': 10},
    })


@dashboard_bp.route('/dashboard/surveys/<run_id>', methods=['GET'])
def survey_admin(run_id):
    run = owner_service.get_managed_run(run_id)

    answered = {
        token for (token,) in db.session.query(SurveyResponse.invite_token)
        .filter(SurveyResponse.run_id == run.id).distinct()
    }
    invites = []
    for invite in run.invites:
        invites.append({
            # Explorer runs show the respondent's own link; org runs never expose full tokens here
            'token': invite.token if run.is_explorer else mask_token(invite.token),
            'completed': invite.completed,
            'has_responses': invite.token in answered,
            'team': invite.team,
            'level': invite.level,
            'location': invite.location,
            'created_at': invite.created_at.isoformat() if invite.created_at else None,
            'used_at': invite.used_at.isoformat() if invite.used_at else None,
        })

    completed = sum(1 for i in invites if i['completed'])
    return api_response(data={
        'run': run.to_dict(),
        'invites': invites,
        'completed': completed,
        'pending': len(invites) - completed,
        'counts': ScoringService.run_response_counts(run.id),
    })


@dashboard_bp.route('/dashboard/surveys/<run_id>/results', methods=['GET'])
def survey_results(run_id):
    run = owner_service.get_managed_run(run_id)
    return api_response(data=ResultsService.results(run, owner_service.is_unlocked(run)))


@dashboard_bp.route('/api/runs/<run_id>/export/responses', methods=['GET'])
def export_responses(run_id):
    run = owner_service.get_managed_run(run_id)
    client_safe = _flag('client_safe', True)
    segmentation = _flag('segmentation', False)

    content = ExportService.responses_csv(run, client_safe=client_safe, segmentation=segmentation)
    current_app.logger.info(f"Responses CSV exported for run {run.id}")
    return _csv_response(content, responses_filename(run.id, client_safe, segmentation))


@dashboard_bp.route('/api/runs/<run_id>/export/summary', methods=['GET'])
def export_summary(run_id):
    run = owner_service.get_managed_run(run_id)
    client_safe = _flag('client_safe', True)
    segmentation = _flag('segmentation', False)
    return _csv_response(ExportService.summary_csv(run), summary_filename(run.id, client_safe, segmentation))


@dashboard_bp.route('/api/runs/<run_id>/export/pdf', methods=['GET'])
def export_pdf(run_id):
    run = owner_service.get_managed_run(run_id)
    counts = ScoringService.run_response_counts(run.id)
    if ScoringService.is_gated(run, counts['respondents']):
        return api_response(
            success=False,
            error=f"At least {ScoringService.min_respondents(run)} respondents are needed before results can be exported",
            status=409,
        )

    trust = ScoringService.trustindex(run.id)
    dimensions = ScoringService.dimension_scores(run.id)
    summary = None
    if owner_service.is_unlocked(run):
        summary = ResultsService.executive_summary(
            run, trust['trustindex_0_to_100'], counts['respondents'], dimensions)

    pdf_bytes = PdfService.survey_report(run, counts, trust, dimensions, summary)
    return Response(
        pdf_bytes,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'inline; filename=trustindex_{run.id}_report.pdf'}
    )
