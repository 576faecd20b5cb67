from flask import Blueprint, Response, request, current_app
from flask_login import current_user, login_required, logout_user

from trustgraph.services import entitlements_service
from trustgraph.services.billing_service import StripeService
from trustgraph.services.errors import NotAuthorised
from trustgraph.services.export_service import (
    ExportService, SURVEYS_EXPORT_FILENAME, SYSTEMS_EXPORT_FILENAME,
)
from trustgraph.services.profile_service import ProfileService
from trustgraph.utils import api_response

settings_bp = Blueprint('settings', __name__)


def _require_export_plan():
    if not entitlements_service.can_export_results(current_user.plan):
        raise NotAuthorised('Export requires Pro or Enterprise plan')


@settings_bp.route('/api/settings/profile', methods=['GET'])
@login_required
def get_profile():
    return api_response(data={
        'profile': current_user.to_dict(),
        'limits': entitlements_service.limits_payload(current_user.plan),
    })


@settings_bp.route('/api/settings/profile', methods=['PATCH'])
@login_required
def update_profile():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    user = ProfileService.update_profile(current_user, data)
    return api_response(data={'profile': user.to_dict()})


@settings_bp.route('/api/settings/delete-account', methods=['POST'])
@login_required
def delete_account():
    data = request.get_json(silent=True) or {}
    ProfileService.delete_account(current_user, data.get('confirmation_name'))
    logout_user()
    return api_response(data={'ok': True})


@settings_bp.route('/api/settings/billing', methods=['GET'])
@login_required
def billing():
    return api_response(data=StripeService.billing_summary(current_user))


@settings_bp.route('/api/settings/export/surveys', methods=['GET'])
@login_required
def export_surveys():
    _require_export_plan()
    content = ExportService.surveys_bulk_csv(current_user)
    current_app.logger.info(f"Bulk survey export for user {current_user.id}")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-disposition": f"attachment; filename={SURVEYS_EXPORT_FILENAME}"}
    )


@settings_bp.route('/api/settings/export/systems', methods=['GET'])
@login_required
def export_systems():
    _require_export_plan()
    content = ExportService.systems_bulk_csv(current_user)
    current_app.logger.info(f"Bulk systems export for user {current_user.id}")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-disposition": f"attachment; filename={SYSTEMS_EXPORT_FILENAME}"}
    )
