"""System assessment scoring, risk flags and recommendations."""

from trustgraph.question_bank import SYSTEM_QUESTIONS, SYSTEM_DIMENSIONS, ANSWER_BOOLEAN, ANSWER_MATURITY
from trustgraph.services import system_scoring_service as scoring

STRONG_EVIDENCE = {'type': 'link', 'pointer': 'https://wiki.example.com/control'}


def full_answers(maturity='automated', boolean=True, evidence=STRONG_EVIDENCE):
    answers = {}
    for q in SYSTEM_QUESTIONS:
        if q['answer_type'] == ANSWER_BOOLEAN:
            answer = {'boolean': boolean}
        else:
            answer = {'maturity': maturity}
        if evidence is not None:
            answer['evidence'] = dict(evidence)
        answers[q['id']] = answer
    return answers


class TestEvidenceCap:
    def test_no_evidence(self):
        assert scoring.evidence_cap(None) == 0.4

    def test_empty_evidence_object_is_still_evidence(self):
        assert scoring.evidence_cap({}) == 0.6

    def test_strong_pointer(self):
        assert scoring.evidence_cap(STRONG_EVIDENCE) == 1.0

    def test_blank_pointer(self):
        assert scoring.evidence_cap({'type': 'link', 'pointer': '   '}) == 0.6

    def test_weak_type(self):
        assert scoring.evidence_cap({'type': 'document_ref', 'pointer': 'DOC-1'}) == 0.6


class TestQuestionScore:
    def test_capped_without_evidence(self):
        assert scoring.question_score({'maturity': 'automated'}, ANSWER_MATURITY) == 0.4

    def test_boolean(self):
        assert scoring.question_score({'boolean': True, 'evidence': STRONG_EVIDENCE}, ANSWER_BOOLEAN) == 1.0
        assert scoring.question_score({'boolean': False, 'evidence': STRONG_EVIDENCE}, ANSWER_BOOLEAN) == 0.0

    def test_unknown_maturity(self):
        assert scoring.maturity_to_score('legendary') == 0.0


class TestScores:
    def test_everything_automated(self):
        answers = full_answers()
        dims, overall = scoring.compute_all_scores(answers)
        assert dims == {dim: 100 for dim in SYSTEM_DIMENSIONS}
        assert overall == 100
        assert scoring.compute_risk_flags(answers) == []
        assert scoring.generate_recommendations(answers) == []

    def test_nothing_answered(self):
        dims, overall = scoring.compute_all_scores({})
        assert dims == {dim: 0 for dim in SYSTEM_DIMENSIONS}
        assert overall == 0

    def test_defined_without_evidence(self):
        dims, overall = scoring.compute_all_scores(full_answers(maturity='defined', evidence=None))
        # maturity questions score 0.4 (capped), booleans 0.4
        assert dims['Transparency'] == 40
        assert overall == 40

    def test_empty_evidence_objects_cap_at_0_6(self):
        answers = full_answers(evidence={})
        dims, overall = scoring.compute_all_scores(answers)
        assert dims == {dim: 60 for dim in SYSTEM_DIMENSIONS}
        assert overall == 60
        assert [f['code'] for f in scoring.compute_risk_flags(answers)] == ['NO_KILL_SWITCH']


class TestRiskFlags:
    def test_all_flags_when_empty(self):
        codes = [f['code'] for f in scoring.compute_risk_flags({})]
        assert codes == ['NO_KILL_SWITCH', 'WEAK_AUDIT_LOGGING', 'WEAK_TOOL_SANDBOX', 'NO_THREAT_MODEL']

    def test_kill_switch_needs_strong_evidence(self):
        answers = full_answers()
        answers['TXS_HO_03'] = {'boolean': True, 'evidence': {'type': 'document_ref', 'pointer': 'x'}}
        codes = [f['code'] for f in scoring.compute_risk_flags(answers)]
        assert codes == ['NO_KILL_SWITCH']

    def test_sandbox_needs_enforced(self):
        answers = full_answers()
        answers['TXS_RISK_03'] = {'maturity': 'defined', 'evidence': STRONG_EVIDENCE}
        codes = [f['code'] for f in scoring.compute_risk_flags(answers)]
        assert codes == ['WEAK_TOOL_SANDBOX']

    def test_flags_are_copies(self):
        flags = scoring.compute_risk_flags({})
        flags[0]['label'] = 'changed'
        assert scoring.RISK_FLAGS['NO_KILL_SWITCH']['label'] == 'No kill switch'


class TestRecommendations:
    def test_priority_and_order(self):
        answers = {
            'TXS_TRAN_02': {'maturity': 'ad_hoc'},
            'TXS_ACC_01': {'maturity': 'none'},
            'TXS_EXPL_01': {'maturity': 'defined'},
            'TXS_HO_01': {'maturity': 'automated', 'evidence': STRONG_EVIDENCE},
        }
        recs = scoring.generate_recommendations(answers)
        assert [(r['question_id'], r['priority']) for r in recs] == [
            ('TXS_ACC_01', 'high'),
            ('TXS_EXPL_01', 'med'),
            ('TXS_TRAN_02', 'med'),
        ]
        assert recs[0]['control'] == 'System owner named'
        assert recs[0]['dimension'] == 'Accountability'

    def test_unanswered_questions_are_skipped(self):
        assert scoring.generate_recommendations({}) == []

    def test_empty_answer_counts_as_answered(self):
        recs = scoring.generate_recommendations({'TXS_ACC_01': {}})
        assert [(r['question_id'], r['priority']) for r in recs] == [('TXS_ACC_01', 'high')]
