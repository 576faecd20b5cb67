"""
Scoring for system assessments.

Pure functions over an answers mapping {question_id: {"maturity"|"boolean", "evidence"}}.
They are shared by the draft preview and the submit endpoint so both always agree.
"""
from trustgraph.question_bank import (
    SYSTEM_QUESTIONS,
    SYSTEM_DIMENSIONS,
    ANSWER_BOOLEAN,
)
from trustgraph.services.scoring_service import round_half_up

MATURITY_SCORES = {
    'none': 0.0,
    'ad_hoc': 0.25,
    'defined': 0.5,
    'enforced': 0.75,
    'automated': 1.0,
}

STRONG_EVIDENCE_TYPES = ('link', 'ticket_ref', 'log_ref', 'runbook_ref', 'policy_ref')

RISK_FLAGS = {
    'NO_KILL_SWITCH': {
        'code': 'NO_KILL_SWITCH',
        'label': 'No kill switch',
        'description': 'The system lacks a verified kill-switch or pause capability, or the evidence is insufficient.',
    },
    'WEAK_AUDIT_LOGGING': {
        'code': 'WEAK_AUDIT_LOGGING',
        'label': 'Weak audit logging',
        'description': "Audit logging maturity is below 'defined', meaning logs may be incomplete or inconsistent.",
    },
    'WEAK_TOOL_SANDBOX': {
        'code': 'WEAK_TOOL_SANDBOX',
        'label': 'Weak tool sandboxing',
        'description': "Tool/action sandboxing maturity is below 'enforced', creating privilege escalation risk.",
    },
    'NO_THREAT_MODEL': {
        'code': 'NO_THREAT_MODEL',
        'label': 'No threat model',
        'description': 'No threat model or risk assessment exists for this system.',
    },
}

RECOMMENDATIONS = {
    # Transparency
    'TXS_TRAN_01': "Document the system's purpose, intended use cases, and target users. Publish internally and make accessible to all stakeholders.",
    'TXS_TRAN_02': 'Create and maintain a data inventory listing all inputs, datasets, and RAG corpora. Include data freshness and update cadence.',
    'TXS_TRAN_03': "Document known failure modes, edge cases, and limitations. Make this available to users alongside the system's outputs.",
    'TXS_TRAN_04': "Add user-facing disclosures explaining what the system does, what it doesn't do, and when outputs should be independently verified.",
    'TXS_TRAN_05': 'Establish a change log tracking model, prompt, and data updates. Include dates, authors, and impact assessments for each change.',

    # Explainability
    'TXS_EXPL_01': 'Ensure the system produces traceable reasoning artifacts (citations, source references, rationale chains) for its outputs. Add citation requirements to prompt templates.',
    'TXS_EXPL_02': 'Implement RAG grounding with required citations. Add fallback behaviour when source material is insufficient or missing.',
    'TXS_EXPL_03': "Add a confidence or uncertainty signal to outputs (e.g., confidence score, 'insufficient information' flags). Calibrate thresholds against evaluation data.",
    'TXS_EXPL_04': 'Build an evaluation suite with golden-set test cases and regression tests. Run regularly and track accuracy, grounding, and hallucination rates.',
    'TXS_EXPL_05': 'Make explainability accessible to non-technical users. Translate technical explanations into plain language and provide them alongside outputs.',

    # Human Oversight
    'TXS_HO_01': 'Define which actions are high-risk and require human-in-the-loop approval. Implement approval gates in the workflow before these actions execute.',
    'TXS_HO_02': 'Create a clear escalation path for uncertain, contested, or policy-violating outputs. Document triggers, escalation contacts, and response SLAs.',
    'TXS_HO_03': 'Implement a kill-switch or pause mechanism that can halt the system quickly. Test it regularly and document the procedure for operators.',
    'TXS_HO_04': 'Implement role-based access control for system administration, prompt editing, and tool configuration. Audit access logs regularly.',
    'TXS_HO_05': 'Set up monitoring dashboards and alerting for anomalous behaviour, error rates, and latency. Ensure operators can intervene based on alerts.',

    # Risk Controls
    'TXS_RISK_01': 'Conduct a threat model or risk assessment covering adversarial inputs, data poisoning, privilege escalation, and unintended behaviour. Document and review periodically.',
    'TXS_RISK_02': 'Implement data protection controls: PII filtering on inputs/outputs, data retention policies, encryption at rest and in transit.',
    'TXS_RISK_03': 'Implement least-privilege tool credentials and sandbox agent actions to scoped resources. Add separate service accounts and explicit allowlists.',
    'TXS_RISK_04': 'Deploy prompt injection defenses, jailbreak detection, and policy filters. Test regularly with adversarial inputs and red-team exercises.',
    'TXS_RISK_05': 'Create an incident response playbook for model/system failures. Include detection criteria, communication templates, rollback procedures, and post-incident review.',

    # Accountability
    'TXS_ACC_01': "Name a system owner (role, person, or team) with documented responsibilities for the system's behaviour, performance, and compliance.",
    'TXS_ACC_02': 'Enable audit logging for all system inputs, outputs, and actions where legally permissible. Ensure logs are immutable and retained per policy.',
    'TXS_ACC_03': 'Implement version control for prompts, models, and tools. Ensure a rollback path exists and has been tested for each component.',
    'TXS_ACC_04': 'Maintain a dependency inventory listing all third-party models, APIs, and plugins. Track versions, licences, and security advisories.',
    'TXS_ACC_05': 'Map the system against applicable regulatory frameworks (EU AI Act, ISO 42001, SOC2, sector-specific rules). Document gaps and remediation plans.',
}


def maturity_to_score(maturity):
    return MATURITY_SCORES.get(maturity, 0.0)


def boolean_to_score(value):
    return 1.0 if value else 0.0


def base_score(answer, answer_type):
    if answer_type == ANSWER_BOOLEAN:
        value = answer.get('boolean')
        return boolean_to_score(value) if value is not None else 0.0
    maturity = answer.get('maturity')
    return maturity_to_score(maturity) if maturity is not None else 0.0


def evidence_cap(evidence):
    """No evidence caps at 0.4, a strong pointer lifts the cap to 1.0, anything else 0.6."""
    if evidence is None:
        return 0.4
    pointer = evidence.get('pointer')
    has_pointer = isinstance(pointer, str) and pointer.strip() != ''
    if evidence.get('type') in STRONG_EVIDENCE_TYPES and has_pointer:
        return 1.0
    return 0.6


def question_score(answer, answer_type):
    return min(base_score(answer, answer_type), evidence_cap(answer.get('evidence')))


def dimension_score(answers, dimension, questions=SYSTEM_QUESTIONS):
    score = 0.0
    for q in questions:
        if q['dimension'] != dimension:
            continue
        answer = answers.get(q['id'])
        if answer is not None:
            score += question_score(answer, q['answer_type']) * q['weight']
    return round_half_up(score * 100)


def overall_score(dimension_scores):
    total = sum(dimension_scores.get(dim, 0) * 0.2 for dim in SYSTEM_DIMENSIONS)
    return round_half_up(total)


def compute_all_scores(answers):
    dimension_scores = {dim: dimension_score(answers, dim) for dim in SYSTEM_DIMENSIONS}
    return dimension_scores, overall_score(dimension_scores)


def compute_risk_flags(answers):
    flags = []

    ho03 = answers.get('TXS_HO_03')
    if ho03 is None or ho03.get('boolean') is False or evidence_cap(ho03.get('evidence')) < 1.0:
        flags.append(RISK_FLAGS['NO_KILL_SWITCH'])

    acc02 = answers.get('TXS_ACC_02')
    if acc02 is None or acc02.get('maturity') in (None, '', 'none', 'ad_hoc'):
        flags.append(RISK_FLAGS['WEAK_AUDIT_LOGGING'])

    risk03 = answers.get('TXS_RISK_03')
    if risk03 is None or risk03.get('maturity') in (None, '', 'none', 'ad_hoc', 'defined'):
        flags.append(RISK_FLAGS['WEAK_TOOL_SANDBOX'])

    risk01 = answers.get('TXS_RISK_01')
    if risk01 is None or risk01.get('maturity') in (None, '', 'none'):
        flags.append(RISK_FLAGS['NO_THREAT_MODEL'])

    return [dict(f) for f in flags]


def generate_recommendations(answers):
    recommendations = []
    for q in SYSTEM_QUESTIONS:
        answer = answers.get(q['id'])
        if answer is None:
            continue
        score = question_score(answer, q['answer_type'])
        if score >= 0.5:
            continue
        text = RECOMMENDATIONS.get(q['id'])
        if not text:
            continue
        recommendations.append({
            'question_id': q['id'],
            'dimension': q['dimension'],
            'control': q['control'],
            'priority': 'high' if score < 0.25 else 'med',
            'recommendation': text,
        })

    recommendations.sort(key=lambda r: (0 if r['priority'] == 'high' else 1, r['question_id']))
    return recommendations
