"""
Executive summary for results pages.

Deterministic: the same scores always produce the same wording, so the text
can be cached, exported and compared between snapshots.
"""
from trustgraph.services.scoring_service import get_tier

DIMENSION_KEYS = ['transparency', 'inclusion', 'confidence', 'explainability', 'risk']

DIMENSION_LABELS = {
    'transparency': 'Transparency',
    'inclusion': 'Inclusion',
    'confidence': 'Confidence',
    'explainability': 'Explainability',
    'risk': 'Risk',
}

WHY_TEMPLATES = {
    'transparency': {
        'strength': 'Decision context is visible enough for people to execute with confidence.',
        'watch': 'Decision context is uneven \u2014 some teams act with clarity, others fill gaps with assumptions.',
        'weak': 'Low visibility into decisions is likely creating friction, rumours, and slower execution.',
    },
    'inclusion': {
        'strength': 'People feel able to contribute and challenge, reducing hidden risk.',
        'watch': 'Participation is uneven \u2014 some voices dominate and dissent may be filtered.',
        'weak': 'Low psychological safety likely suppresses challenge and delays surfacing problems.',
    },
    'confidence': {
        'strength': 'Leadership intent and follow-through are credible, supporting pace.',
        'watch': 'Follow-through is inconsistent, creating pockets of scepticism.',
        'weak': 'Low confidence in leadership follow-through is likely reducing pace and engagement.',
    },
    'explainability': {
        'strength': 'Understanding of how decisions are made is strong enough to sustain trust.',
        'watch': 'Some decisions feel opaque, especially where AI or complexity is involved.',
        'weak': 'Opaque decisions (especially AI-supported) are likely undermining trust and adoption.',
    },
    'risk': {
        'strength': 'Controls and escalation are strong enough to prevent avoidable exposure.',
        'watch': 'Controls exist but enforcement is inconsistent across teams or workflows.',
        'weak': 'Risk controls are too weak \u2014 exposure may be rising without visibility or escalation.',
    },
}

PRIORITY_PACKS = {
    'transparency': {
        'title': 'Increase decision transparency where it matters',
        'rationale': 'Low transparency creates rumours, slows decisions, and reduces adoption.',
        'probes': [
            'Where do people feel decisions are made without clear reasons?',
            'What information is consistently missing at the point of execution?',
            "Which decisions need a published \u2018why / trade-offs / owner\u2019 note?",
        ],
    },
    'inclusion': {
        'title': 'Raise psychological safety and inclusion signals',
        'rationale': 'Low inclusion suppresses challenge and hides risk until late.',
        'probes': [
            'Where do people avoid speaking up, and why?',
            'Which groups feel least heard in planning and review?',
            'Are dissenting views recorded and addressed or ignored?',
        ],
    },
    'confidence': {
        'title': 'Rebuild confidence in leadership follow-through',
        'rationale': 'Low confidence reduces pace and increases silent disengagement.',
        'probes': [
            'Which promises or priorities feel repeatedly broken?',
            'Where is execution drifting from stated strategy?',
            'Do teams believe feedback leads to change?',
        ],
    },
    'explainability': {
        'title': 'Improve explainability and human understanding',
        'rationale': 'Low explainability makes AI-driven decisions brittle and hard to trust.',
        'probes': [
            'Which outputs feel like black boxes to teams?',
            "Where is the \u2018reason / evidence / confidence\u2019 missing?",
            'Who is accountable when AI output is wrong?',
        ],
    },
    'risk': {
        'title': 'Strengthen governance controls and escalation',
        'rationale': 'Low risk control increases operational and regulatory exposure.',
        'probes': [
            'Where can risky decisions ship without review?',
            'Are escalation paths clear when confidence is low?',
            'Is monitoring continuous or periodic and manual?',
        ],
    },
}


def get_status(response_count, min_threshold):
    if response_count < min_threshold:
        return 'insufficient_data'
    if response_count < min_threshold * 2:
        return 'provisional'
    return 'stable'


def get_severity(dim_score):
    if dim_score >= 75:
        return 'strength'
    if dim_score >= 60:
        return 'watch'
    return 'weak'


def _driver(entry):
    return {
        'key': entry['key'],
        'label': entry['label'],
        'score': entry['score'],
        'severity': entry['severity'],
        'why': WHY_TEMPLATES[entry['key']][entry['severity']],
    }


def pick_drivers(dim_entries):
    # sorted() is stable, so ties keep the dimension order
    ascending = sorted(dim_entries, key=lambda d: d['score'])
    descending = sorted(dim_entries, key=lambda d: d['score'], reverse=True)

    drivers = [_driver(d) for d in ascending if d['severity'] in ('weak', 'watch')][:2]
    chosen = {d['key'] for d in drivers}

    strongest = next((d for d in descending if d['score'] >= 75 and d['key'] not in chosen), None)
    if strongest is None:
        strongest = next((d for d in descending if d['severity'] == 'watch' and d['key'] not in chosen), None)
    if strongest is None:
        strongest = next((d for d in descending if d['key'] not in chosen), None)
    if strongest is not None:
        drivers.append(_driver(strongest))

    return drivers


def make_headline(tier, status, drivers):
    weakest = next((d for d in drivers if d['severity'] in ('weak', 'watch')), None)
    strongest = next((d for d in drivers if d['severity'] == 'strength'), None)
    if strongest is None and drivers:
        strongest = drivers[-1]
    weak_label = weakest['label'] if weakest else 'multiple areas'
    strong_label = strongest['label'] if strongest else 'relative strengths'

    if tier == 'trusted':
        headline = f"TrustGraph is strong and resilient \u2014 your main advantage is {strong_label}, with attention needed on {weak_label}."
    elif tier == 'stable':
        headline = f"TrustGraph is broadly stable \u2014 performance is supported by {strong_label}, but {weak_label} is the main constraint."
    elif tier == 'elevated_risk':
        headline = f"TrustGraph is under strain \u2014 {weak_label} is pulling overall trust down and will limit performance unless addressed."
    else:
        headline = f"TrustGraph is fragile \u2014 multiple trust drivers are failing, with {weak_label} the most urgent exposure."

    if status == 'insufficient_data':
        headline = f"Early signal: {headline}"
    return headline


def make_posture(module, dims):
    risk = dims.get('risk', 0)
    explainability = dims.get('explainability', 0)

    if module == 'sys':
        if risk < 60 or explainability < 60:
            return "System assurance posture is reactive \u2014 evaluation and monitoring aren\u2019t strong enough to reliably prevent avoidable risk."
        if risk >= 75 and explainability >= 75:
            return 'System assurance posture is proactive \u2014 evaluation, monitoring, and auditability are strong enough to support safe autonomy.'
        return 'System assurance posture is developing \u2014 foundations are present, but consistency and enforcement need strengthening.'

    if risk < 60 or explainability < 60:
        return "Governance posture is reactive \u2014 controls and explainability aren\u2019t strong enough to reliably prevent avoidable risk."
    if risk >= 75 and explainability >= 75:
        return 'Governance posture is proactive \u2014 oversight and explainability are strong enough to support safe autonomy.'
    return 'Governance posture is developing \u2014 foundations are present, but consistency and enforcement need strengthening.'


def make_confidence_note(status, response_count, min_threshold):
    if status == 'insufficient_data':
        plural = '' if response_count == 1 else 's'
        return (f"This is an early signal based on {response_count} response{plural}. "
                f"Results become more reliable at {min_threshold}+ responses.")
    if status == 'provisional':
        return (f"Based on {response_count} responses. Directionally useful \u2014 "
                f"expect some movement as more responses arrive.")
    return (f"Based on {response_count} responses. Stable enough to act on \u2014 "
            f"track changes over time to confirm impact.")


def make_trend_note(score, dimensions, previous_score=None, previous_dimensions=None):
    if previous_score is None:
        return None

    delta = score - previous_score
    if abs(delta) < 3:
        note = 'Stable vs last snapshot.'
    elif delta >= 3:
        note = f"Improving (+{_fmt(delta)}) vs last snapshot."
    else:
        note = f"Declining ({_fmt(delta)}) vs last snapshot."

    if previous_dimensions:
        max_delta = 0
        max_key = None
        for key, prev in previous_dimensions.items():
            current = dimensions.get(key)
            if current is not None and prev is not None:
                d = abs(current - prev)
                if d > max_delta:
                    max_delta = d
                    max_key = key
        if max_key and max_delta >= 3:
            dim_delta = dimensions[max_key] - previous_dimensions[max_key]
            direction = 'up' if dim_delta > 0 else 'down'
            note += f" Largest shift: {DIMENSION_LABELS[max_key]} ({direction} {_fmt(abs(dim_delta))})."

    return note


def _fmt(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(round(value, 1)) if isinstance(value, float) else str(value)


def build_executive_summary(module, score, response_count, min_threshold, dimensions,
                            previous_score=None, previous_dimensions=None):
    """
    dimensions maps transparency/inclusion/confidence/explainability/risk to 0-100.
    Returns a dict with status, tier, headline, posture, primary_drivers,
    priorities, confidence_note and (when a previous snapshot is given) trend_note.
    """
    status = get_status(response_count, min_threshold)
    tier = get_tier(score)

    entries = [
        {
            'key': key,
            'label': DIMENSION_LABELS[key],
            'score': value,
            'severity': get_severity(value),
        }
        for key, value in dimensions.items()
    ]

    drivers = pick_drivers(entries)
    weakest_two = sorted(entries, key=lambda d: d['score'])[:2]
    priorities = [dict(PRIORITY_PACKS[d['key']]) for d in weakest_two]

    summary = {
        'status': status,
        'tier': tier,
        'headline': make_headline(tier, status, drivers),
        'posture': make_posture(module, dimensions),
        'primary_drivers': drivers,
        'priorities': priorities,
        'confidence_note': make_confidence_note(status, response_count, min_threshold),
    }
    trend = make_trend_note(score, dimensions, previous_score, previous_dimensions)
    if trend:
        summary['trend_note'] = trend
    return summary
