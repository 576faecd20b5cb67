"""
Static question banks.

ORG_QUESTIONS seed the `questions` table used by organisational and explorer
surveys (1-5 Likert scale). SYSTEM_QUESTIONS is the v1 control bank for
system assessments and is never stored; runs reference it by id.
"""

# --- Organisational survey (TrustOrg) ---

ORG_DIMENSIONS = [
    'Transparency',
    'Inclusion',
    'Employee Confidence',
    'AI Explainability',
    'Risk',
]

# Keys used by the executive summary
ORG_DIMENSION_KEYS = {
    'Transparency': 'transparency',
    'Inclusion': 'inclusion',
    'Employee Confidence': 'confidence',
    'AI Explainability': 'explainability',
    'Risk': 'risk',
}

ORG_QUESTIONS = [
    # Transparency
    {'id': 'ORG_TRAN_01', 'dimension': 'Transparency', 'sort_order': 1,
     'prompt': 'I understand the reasons behind major decisions that affect my work.'},
    {'id': 'ORG_TRAN_02', 'dimension': 'Transparency', 'sort_order': 2,
     'prompt': 'Leaders share information openly, including bad news.'},
    {'id': 'ORG_TRAN_03', 'dimension': 'Transparency', 'sort_order': 3,
     'prompt': 'I know who owns the decisions that matter to my team.'},
    {'id': 'ORG_TRAN_04', 'dimension': 'Transparency', 'sort_order': 4,
     'prompt': 'Priorities and trade-offs are communicated clearly.'},

    # Inclusion
    {'id': 'ORG_INCL_01', 'dimension': 'Inclusion', 'sort_order': 5,
     'prompt': 'I feel safe to challenge a decision without negative consequences.'},
    {'id': 'ORG_INCL_02', 'dimension': 'Inclusion', 'sort_order': 6,
     'prompt': 'Different perspectives are actively sought before decisions are made.'},
    {'id': 'ORG_INCL_03', 'dimension': 'Inclusion', 'sort_order': 7,
     'prompt': 'People like me are heard in planning and review.'},
    {'id': 'ORG_INCL_04', 'dimension': 'Inclusion', 'sort_order': 8,
     'prompt': 'Dissenting views are recorded and addressed.'},

    # Employee Confidence
    {'id': 'ORG_CONF_01', 'dimension': 'Employee Confidence', 'sort_order': 9,
     'prompt': 'Leadership follows through on what it commits to.'},
    {'id': 'ORG_CONF_02', 'dimension': 'Employee Confidence', 'sort_order': 10,
     'prompt': 'When I raise an issue, I believe it will be addressed.'},
    {'id': 'ORG_CONF_03', 'dimension': 'Employee Confidence', 'sort_order': 11,
     'prompt': 'Execution matches the strategy we have been told about.'},
    {'id': 'ORG_CONF_04', 'dimension': 'Employee Confidence', 'sort_order': 12,
     'prompt': 'Feedback from surveys like this one leads to visible change.'},

    # AI Explainability
    {'id': 'ORG_EXPL_01', 'dimension': 'AI Explainability', 'sort_order': 13,
     'prompt': 'I understand how AI tools are used in decisions that affect me.'},
    {'id': 'ORG_EXPL_02', 'dimension': 'AI Explainability', 'sort_order': 14,
     'prompt': 'AI-assisted outputs come with reasons, inputs and limitations.'},
    {'id': 'ORG_EXPL_03', 'dimension': 'AI Explainability', 'sort_order': 15,
     'prompt': 'I know how to question or contest an AI-supported decision.'},
    {'id': 'ORG_EXPL_04', 'dimension': 'AI Explainability', 'sort_order': 16,
     'prompt': 'It is clear who is accountable when an AI output is wrong.'},

    # Risk
    {'id': 'ORG_RISK_01', 'dimension': 'Risk', 'sort_order': 17,
     'prompt': 'Risky decisions cannot ship without an appropriate review.'},
    {'id': 'ORG_RISK_02', 'dimension': 'Risk', 'sort_order': 18,
     'prompt': 'Escalation paths are clear when confidence is low.'},
    {'id': 'ORG_RISK_03', 'dimension': 'Risk', 'sort_order': 19,
     'prompt': 'Controls are applied consistently across teams.'},
    {'id': 'ORG_RISK_04', 'dimension': 'Risk', 'sort_order': 20,
     'prompt': 'Problems are surfaced early rather than discovered late.'},
]


# --- System assessment (TrustSys) v1 ---

SYSTEM_DIMENSIONS = [
    'Transparency',
    'Explainability',
    'Human Oversight',
    'Risk Controls',
    'Accountability',
]

ANSWER_MATURITY = 'enum_maturity'
ANSWER_BOOLEAN = 'boolean'

MATURITY_LEVELS = [
    ('none', 'None'),
    ('ad_hoc', 'Ad-hoc'),
    ('defined', 'Defined'),
    ('enforced', 'Enforced'),
    ('automated', 'Automated'),
]

EVIDENCE_TYPES = [
    ('link', 'Link / URL'),
    ('document_ref', 'Document reference'),
    ('ticket_ref', 'Ticket reference'),
    ('policy_ref', 'Policy reference'),
    ('runbook_ref', 'Runbook reference'),
    ('log_ref', 'Log reference'),
]

QUESTION_SET_VERSION = 'v1'


def _q(id, dimension, control, prompt, answer_type=ANSWER_MATURITY, weight=0.20):
    return {
        'id': id,
        'dimension': dimension,
        'control': control,
        'prompt': prompt,
        'answer_type': answer_type,
        'weight': weight,
    }


SYSTEM_QUESTIONS = [
    # Transparency
    _q('TXS_TRAN_01', 'Transparency', 'System purpose documented',
       'System purpose documented?'),
    _q('TXS_TRAN_02', 'Transparency', 'Data sources documented',
       'Data sources documented (inputs, datasets, RAG corpora)?'),
    _q('TXS_TRAN_03', 'Transparency', 'Known limitations documented',
       'Known limitations documented (failure modes, edge cases)?'),
    _q('TXS_TRAN_04', 'Transparency', 'User disclosures exist',
       'User disclosures exist (what it is, what it isn’t, when to trust it)?'),
    _q('TXS_TRAN_05', 'Transparency', 'Change log exists',
       'Change log exists for model/prompt/data updates?'),

    # Explainability
    _q('TXS_EXPL_01', 'Explainability', 'Traceable reasoning artifacts',
       'Produces traceable reasoning artifacts (citations, sources, rationale) where applicable?'),
    _q('TXS_EXPL_02', 'Explainability', 'RAG grounding implemented',
       'RAG grounding implemented (citations required, fallback when missing)?',
       answer_type=ANSWER_BOOLEAN),
    _q('TXS_EXPL_03', 'Explainability', 'Output confidence signal',
       'Output confidence/uncertainty signal present (e.g., confidence score, “insufficient info”)?'),
    _q('TXS_EXPL_04', 'Explainability', 'Evaluation suite exists',
       'Evaluation suite exists (golden set / regression tests) for accuracy/grounding?'),
    _q('TXS_EXPL_05', 'Explainability', 'Explainability accessible to users',
       'Explainability accessible to target users (not just engineers)?'),

    # Human Oversight
    _q('TXS_HO_01', 'Human Oversight', 'Human-in-the-loop for high-risk',
       'Human-in-the-loop required for high-risk actions?', weight=0.25),
    _q('TXS_HO_02', 'Human Oversight', 'Escalation path exists',
       'Clear escalation path exists (when uncertain / policy violation / risk)?'),
    _q('TXS_HO_03', 'Human Oversight', 'Pause/kill-switch capability',
       'Ability to pause/kill-switch system quickly?', answer_type=ANSWER_BOOLEAN),
    _q('TXS_HO_04', 'Human Oversight', 'Access control exists',
       'Access control exists (who can run/admin/change prompts/tools)?'),
    _q('TXS_HO_05', 'Human Oversight', 'Monitoring supports intervention',
       'Monitoring supports operator intervention (alerts, dashboards)?', weight=0.15),

    # Risk Controls
    _q('TXS_RISK_01', 'Risk Controls', 'Threat model / risk assessment',
       'Threat model or risk assessment exists (documented)?'),
    _q('TXS_RISK_02', 'Risk Controls', 'Data protection controls',
       'Data protection controls (PII filtering, retention, encryption) implemented?'),
    _q('TXS_RISK_03', 'Risk Controls', 'Tool/action sandboxing',
       'Tool/action sandboxing (least privilege, scoped credentials) implemented?'),
    _q('TXS_RISK_04', 'Risk Controls', 'Abuse prevention',
       'Abuse prevention (prompt injection defense, jailbreak checks, policy filters)?'),
    _q('TXS_RISK_05', 'Risk Controls', 'Incident response playbook',
       'Incident response playbook for model/system failures?'),

    # Accountability
    _q('TXS_ACC_01', 'Accountability', 'System owner named',
       'System owner named (role/person/team) + responsibilities documented?'),
    _q('TXS_ACC_02', 'Accountability', 'Audit logging enabled',
       'Audit logging enabled for inputs/outputs/actions (where permissible)?', weight=0.25),
    _q('TXS_ACC_03', 'Accountability', 'Versioning with rollback',
       'Versioning of prompts/models/tools with rollback path?'),
    _q('TXS_ACC_04', 'Accountability', 'Third-party dependency inventory',
       'Third-party dependency inventory (models, APIs, plugins) maintained?', weight=0.15),
    _q('TXS_ACC_05', 'Accountability', 'Compliance mapping',
       'Compliance mapping done (AI Act / ISO / SOC2 / sector rules) where relevant?'),
]

SYSTEM_QUESTIONS_BY_ID = {q['id']: q for q in SYSTEM_QUESTIONS}


def questions_for_dimension(dimension):
    return [q for q in SYSTEM_QUESTIONS if q['dimension'] == dimension]
