import math

from trustgraph.models import SurveyRun, System, PLAN_EXPLORER, PLAN_PRO, PLAN_ENTERPRISE

PLAN_LIMITS = {
    PLAN_EXPLORER: {'max_surveys': 1, 'max_systems': 0, 'can_export': False},
    PLAN_PRO: {'max_surveys': 5, 'max_systems': 2, 'can_export': True},
    PLAN_ENTERPRISE: {'max_surveys': math.inf, 'max_systems': math.inf, 'can_export': True},
}


def get_plan_limits(plan):
    """Limits for a plan name; anything unknown or missing is treated as explorer."""
    return PLAN_LIMITS.get(plan or PLAN_EXPLORER, PLAN_LIMITS[PLAN_EXPLORER])


def can_create_survey(plan, current_count):
    return current_count < get_plan_limits(plan)['max_surveys']


def can_create_system(plan, current_count):
    return current_count < get_plan_limits(plan)['max_systems']


def can_export_results(plan):
    return get_plan_limits(plan)['can_export']


def limits_payload(plan):
    """JSON-safe limits (infinity becomes null)."""
    limits = get_plan_limits(plan)
    return {
        'plan': plan if plan in PLAN_LIMITS else PLAN_EXPLORER,
        'max_surveys': None if math.isinf(limits['max_surveys']) else limits['max_surveys'],
        'max_systems': None if math.isinf(limits['max_systems']) else limits['max_systems'],
        'can_export': limits['can_export'],
    }


def survey_cap_message(plan):
    limits = get_plan_limits(plan)
    n = limits['max_surveys']
    return f"You've reached your plan limit of {n} survey{'' if n == 1 else 's'}. Upgrade to continue."


def system_cap_message(plan):
    limits = get_plan_limits(plan)
    if limits['max_systems'] == 0:
        return 'Systems assessment is available on Pro plans and above.'
    n = limits['max_systems']
    return f"You've reached your plan limit of {n} system{'' if n == 1 else 's'}. Upgrade to continue."


def user_survey_count(user_id):
    return SurveyRun.query.filter_by(owner_user_id=user_id).count()


def user_system_count(user_id):
    # Archiving a system frees its slot
    return System.query.filter_by(owner_id=user_id, archived=False).count()
