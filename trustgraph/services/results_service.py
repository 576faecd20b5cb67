from trustgraph.question_bank import ORG_DIMENSION_KEYS
from trustgraph.services.scoring_service import ScoringService, band_for, tier_for_score
from trustgraph.services.summary_service import build_executive_summary, DIMENSION_KEYS


def summary_dimensions(dimension_rows):
    """Maps dimension rows onto summary keys; None unless all five are scored."""
    dims = {}
    for row in dimension_rows:
        key = ORG_DIMENSION_KEYS.get(row['dimension'])
        if key and row['score_0_to_100'] is not None:
            dims[key] = row['score_0_to_100']
    if any(key not in dims for key in DIMENSION_KEYS):
        return None
    return {key: dims[key] for key in DIMENSION_KEYS}


def weakest_dimension(dimension_rows):
    scored = [d for d in dimension_rows if d['score_0_to_100'] is not None]
    if not scored:
        return None
    return min(scored, key=lambda d: d['score_0_to_100'])


class ResultsService:
    @staticmethod
    def executive_summary(run, score, respondents, dimension_rows):
        dims = summary_dimensions(dimension_rows)
        if score is None or dims is None:
            return None
        return build_executive_summary(
            'org',
            score,
            respondents,
            ScoringService.min_respondents(run),
            dims,
        )

    @staticmethod
    def results(run, unlocked):
        counts = ScoringService.run_response_counts(run.id)
        min_respondents = ScoringService.min_respondents(run)
        gated = ScoringService.is_gated(run, counts['respondents'])

        payload = {
            'run': run.to_dict(),
            'respondents': counts['respondents'],
            'answers': counts['answers'],
            'min_respondents': min_respondents,
            'gated': gated,
            'unlocked': unlocked,
        }
        if gated:
            return payload

        trust = ScoringService.trustindex(run.id)
        dimensions = ScoringService.dimension_scores(run.id)
        score = trust['trustindex_0_to_100']

        payload['trustindex'] = trust
        payload['dimensions'] = dimensions
        payload['weakest_dimension'] = weakest_dimension(dimensions)
        if score is not None:
            payload['tier'] = tier_for_score(score)

        if not unlocked:
            return payload

        if score is not None:
            payload['band'] = band_for(score)
        payload['executive_summary'] = ResultsService.executive_summary(
            run, score, counts['respondents'], dimensions)
        return payload
