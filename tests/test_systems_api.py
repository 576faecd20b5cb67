"""AI system registry and assessment runs."""

import pytest

from trustgraph.question_bank import SYSTEM_QUESTIONS, ANSWER_BOOLEAN

STRONG_EVIDENCE = {'type': 'link', 'pointer': 'https://wiki.example.com/control', 'note': 'see wiki'}


@pytest.fixture
def new_system(client):
    def _create(name='Support Copilot', **fields):
        res = client.post('/api/systems', json=dict({'name': name}, **fields))
        assert res.status_code == 201, res.get_json()
        return res.get_json()['data']['system']
    return _create


@pytest.fixture
def new_run(client):
    def _create(system_id, version_label='v1.2'):
        res = client.post(f"/api/systems/{system_id}/runs", json={'version_label': version_label})
        assert res.status_code == 201, res.get_json()
        return res.get_json()['data']['run']
    return _create


def answer_all(client, run_id, maturity='automated', evidence=STRONG_EVIDENCE):
    for q in SYSTEM_QUESTIONS:
        if q['answer_type'] == ANSWER_BOOLEAN:
            answer = {'boolean': True}
        else:
            answer = {'maturity': maturity}
        res = client.post(f"/api/systems/runs/{run_id}/responses", json={
            'question_id': q['id'], 'answer': answer, 'evidence': evidence,
        })
        assert res.status_code == 200, res.get_json()


class TestSystemRegistry:
    def test_explorer_cannot_create(self, client, explorer_user):
        res = client.post('/api/systems', json={'name': 'Bot'})
        assert res.status_code == 403
        body = res.get_json()
        assert body['data']['code'] == 'PLAN_CAP_REACHED'
        assert body['error'] == 'Systems assessment is available on Pro plans and above.'

    def test_create_and_list(self, client, pro_user, new_system):
        system = new_system(version_label='2.0', type='assistant', environment='production')
        assert system['archived'] is False

        systems = client.get('/api/systems').get_json()['data']['systems']
        assert len(systems) == 1
        assert systems[0]['id'] == system['id']
        assert systems[0]['latest_score'] is None
        assert systems[0]['assessment_count'] == 0

    def test_name_required(self, client, pro_user):
        res = client.post('/api/systems', json={'name': '   '})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'name is required'

    def test_pro_cap_and_archive(self, client, pro_user, new_system):
        first = new_system('One')
        new_system('Two')
        res = client.post('/api/systems', json={'name': 'Three'})
        assert res.status_code == 403
        assert res.get_json()['error'] == "You've reached your plan limit of 2 systems. Upgrade to continue."

        assert client.delete(f"/api/systems/{first['id']}").status_code == 200
        assert [s['name'] for s in client.get('/api/systems').get_json()['data']['systems']] == ['Two']
        assert client.post('/api/systems', json={'name': 'Three'}).status_code == 201

    def test_update(self, client, pro_user, new_system):
        system = new_system()
        res = client.patch(f"/api/systems/{system['id']}", json={'name': 'Renamed', 'environment': 'staging'})
        assert res.status_code == 200
        updated = res.get_json()['data']['system']
        assert updated['name'] == 'Renamed'
        assert updated['environment'] == 'staging'

        res = client.patch(f"/api/systems/{system['id']}", json={'archived': True})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'No valid fields to update'

    def test_not_found(self, client, pro_user):
        res = client.get('/api/systems/missing')
        assert res.status_code == 404
        assert res.get_json()['error'] == 'System not found'

    def test_other_owner(self, app, client, pro_user, new_system, make_user, login):
        system = new_system()
        make_user(email='rival@example.com', plan='pro')
        rival = app.test_client()
        login('rival@example.com', using=rival)
        assert rival.get(f"/api/systems/{system['id']}").status_code == 403
        assert rival.delete(f"/api/systems/{system['id']}").status_code == 403


class TestAssessmentRuns:
    def test_create_run(self, client, pro_user, new_system, new_run):
        system = new_system()
        run = new_run(system['id'])
        assert run['status'] == 'draft'
        assert run['question_set_version'] == 'v1'
        assert run['version_label'] == 'v1.2'

        runs = client.get(f"/api/systems/{system['id']}/runs").get_json()['data']['runs']
        assert [r['id'] for r in runs] == [run['id']]

    @pytest.mark.parametrize("payload,error", [
        ({'question_id': 'TXS_NOPE', 'answer': {'maturity': 'defined'}}, 'Invalid question_id'),
        ({'question_id': 'TXS_TRAN_01'}, 'answer is required and must be an object'),
        ({'question_id': 'TXS_TRAN_01', 'answer': 'defined'}, 'answer is required and must be an object'),
        ({'question_id': 'TXS_TRAN_01', 'answer': {'maturity': 'defined'}, 'evidence': 'wiki'},
         'evidence must be an object'),
    ])
    def test_response_validation(self, client, pro_user, new_system, new_run, payload, error):
        run = new_run(new_system()['id'])
        res = client.post(f"/api/systems/runs/{run['id']}/responses", json=payload)
        assert res.status_code == 400
        assert res.get_json()['error'] == error

    def test_response_upsert(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        url = f"/api/systems/runs/{run['id']}/responses"
        client.post(url, json={'question_id': 'TXS_TRAN_01', 'answer': {'maturity': 'ad_hoc'}})
        client.post(url, json={'question_id': 'TXS_TRAN_01', 'answer': {'maturity': 'enforced'}})

        detail = client.get(f"/api/systems/runs/{run['id']}").get_json()['data']
        assert len(detail['responses']) == 1
        assert detail['responses'][0]['answer'] == {'maturity': 'enforced'}
        assert detail['recommendations'] == []

    def test_submit_incomplete(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        client.post(f"/api/systems/runs/{run['id']}/responses", json={
            'question_id': 'TXS_TRAN_01', 'answer': {'maturity': 'defined'},
        })
        res = client.post(f"/api/systems/runs/{run['id']}/submit")
        assert res.status_code == 400
        body = res.get_json()
        assert body['error'] == 'Missing responses for 24 question(s)'
        assert 'TXS_TRAN_01' not in body['data']['missing']
        assert len(body['data']['missing']) == 24

    def test_submit_full_marks(self, client, pro_user, new_system, new_run):
        system = new_system()
        run = new_run(system['id'])
        answer_all(client, run['id'])

        res = client.post(f"/api/systems/runs/{run['id']}/submit")
        assert res.status_code == 200
        body = res.get_json()['data']
        assert body['run']['status'] == 'submitted'
        assert body['run']['overall_score'] == 100
        assert body['run']['risk_flags'] == []
        assert body['recommendations'] == []

        systems = client.get('/api/systems').get_json()['data']['systems']
        assert systems[0]['latest_score'] == 100
        assert systems[0]['assessment_count'] == 1

    def test_submit_weak_run(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        answer_all(client, run['id'], maturity='none', evidence=None)

        body = client.post(f"/api/systems/runs/{run['id']}/submit").get_json()['data']
        codes = [f['code'] for f in body['run']['risk_flags']]
        assert codes == ['NO_KILL_SWITCH', 'WEAK_AUDIT_LOGGING', 'WEAK_TOOL_SANDBOX', 'NO_THREAT_MODEL']
        # unevidenced booleans cap at 0.4, so they are medium priority
        priorities = [r['priority'] for r in body['recommendations']]
        assert priorities == ['high'] * 23 + ['med'] * 2

        detail = client.get(f"/api/systems/runs/{run['id']}").get_json()['data']
        assert [r['question_id'] for r in detail['recommendations']] == \
            [r['question_id'] for r in body['recommendations']]

    def test_empty_answer_object_is_accepted(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        res = client.post(f"/api/systems/runs/{run['id']}/responses", json={
            'question_id': 'TXS_TRAN_01', 'answer': {},
        })
        assert res.status_code == 200

    def test_submit_with_empty_evidence_objects(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        answer_all(client, run['id'], evidence={})

        body = client.post(f"/api/systems/runs/{run['id']}/submit").get_json()['data']
        assert body['run']['overall_score'] == 60
        assert [f['code'] for f in body['run']['risk_flags']] == ['NO_KILL_SWITCH']
        assert body['recommendations'] == []

    def test_submitted_run_is_frozen(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        answer_all(client, run['id'])
        client.post(f"/api/systems/runs/{run['id']}/submit")

        res = client.post(f"/api/systems/runs/{run['id']}/responses", json={
            'question_id': 'TXS_TRAN_01', 'answer': {'maturity': 'none'},
        })
        assert res.status_code == 409
        assert res.get_json()['error'] == 'Run has already been submitted'
        assert client.post(f"/api/systems/runs/{run['id']}/submit").status_code == 409

    def test_unknown_run(self, client, pro_user):
        res = client.get('/api/systems/runs/missing')
        assert res.status_code == 404
        assert res.get_json()['error'] == 'Run not found'


class TestAssessmentPdf:
    def test_draft_has_no_pdf(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        res = client.get(f"/api/systems/runs/{run['id']}/export/pdf")
        assert res.status_code == 409
        assert res.get_json()['error'] == 'Run has not been submitted yet'

    def test_pdf(self, client, pro_user, new_system, new_run):
        run = new_run(new_system()['id'])
        answer_all(client, run['id'], maturity='ad_hoc', evidence=None)
        client.post(f"/api/systems/runs/{run['id']}/submit")

        res = client.get(f"/api/systems/runs/{run['id']}/export/pdf")
        assert res.status_code == 200
        assert res.mimetype == 'application/pdf'
        assert res.data.startswith(b'%PDF')
