import math

from flask import current_app
from sqlalchemy import func

from trustgraph.models import db, Response, Question, MODE_EXPLORER

MIN_ORG_RESPONDENTS = 5

TIERS = {
    'trusted': {'key': 'trusted', 'label': 'Trusted', 'hex': '#16a34a'},
    'stable': {'key': 'stable', 'label': 'Stable', 'hex': '#2563eb'},
    'elevated_risk': {'key': 'elevated_risk', 'label': 'Elevated Risk', 'hex': '#d97706'},
    'critical': {'key': 'critical', 'label': 'Critical', 'hex': '#dc2626'},
}


def org_threshold():
    return current_app.config.get('MIN_ORG_RESPONDENTS', MIN_ORG_RESPONDENTS)


def round_half_up(value, digits=0):
    """Rounds .5 away from zero for positive scores (round() would bank to even)."""
    factor = 10 ** digits
    result = math.floor(value * factor + 0.5) / factor
    return int(result) if digits == 0 else result


def rescale(mean_1_to_5):
    """Linear map of a 1-5 Likert mean onto 0-100, one decimal."""
    if mean_1_to_5 is None:
        return None
    score = round_half_up((float(mean_1_to_5) - 1) / 4 * 100, 1)
    return min(100.0, max(0.0, score))


def get_tier(score):
    if score >= 80:
        return 'trusted'
    if score >= 65:
        return 'stable'
    if score >= 50:
        return 'elevated_risk'
    return 'critical'


def tier_for_score(score):
    return TIERS[get_tier(score)]


def band_for(score):
    if score < 40:
        return {
            'label': 'Fragile',
            'summary': 'Low trust signals systemic friction and elevated execution risk.',
        }
    if score < 70:
        return {
            'label': 'Mixed',
            'summary': 'Trust is inconsistent; performance is likely uneven across teams or cohorts.',
        }
    return {
        'label': 'Strong',
        'summary': 'Trust is an asset; protect it and scale what is working.',
    }


class ScoringService:
    @staticmethod
    def min_respondents(run):
        if run.mode == MODE_EXPLORER:
            return 1
        return org_threshold()

    @staticmethod
    def is_gated(run, respondents):
        """Organisational runs hide results until enough people answered."""
        if run.mode == MODE_EXPLORER:
            return False
        return respondents < org_threshold()

    @staticmethod
    def run_response_counts(run_id):
        respondents, answers = db.session.query(
            func.count(func.distinct(Response.invite_token)),
            func.count(Response.id),
        ).filter(Response.run_id == run_id).one()
        return {
            'run_id': run_id,
            'respondents': respondents or 0,
            'answers': answers or 0,
        }

    @staticmethod
    def counts_for_runs(run_ids):
        if not run_ids:
            return {}
        rows = db.session.query(
            Response.run_id,
            func.count(func.distinct(Response.invite_token)),
            func.count(Response.id),
        ).filter(Response.run_id.in_(run_ids)).group_by(Response.run_id).all()
        return {run_id: {'respondents': r, 'answers': a} for run_id, r, a in rows}

    @staticmethod
    def dimension_scores(run_id):
        rows = db.session.query(
            Question.dimension,
            func.avg(Response.value),
            func.count(Response.id),
        ).join(Question, Response.question_id == Question.id) \
         .filter(Response.run_id == run_id) \
         .group_by(Question.dimension) \
         .order_by(func.min(Question.sort_order)) \
         .all()

        results = []
        for dimension, mean, n_answers in rows:
            mean = float(mean) if mean is not None else None
            results.append({
                'run_id': run_id,
                'dimension': dimension,
                'mean_1_to_5': round_half_up(mean, 2) if mean is not None else None,
                'score_0_to_100': rescale(mean),
                'n_answers': n_answers,
            })
        return results

    @staticmethod
    def trustindex(run_id):
        mean = db.session.query(func.avg(Response.value)).filter(Response.run_id == run_id).scalar()
        mean = float(mean) if mean is not None else None
        return {
            'run_id': run_id,
            'overall_mean_1_to_5': round_half_up(mean, 2) if mean is not None else None,
            'trustindex_0_to_100': rescale(mean),
        }
