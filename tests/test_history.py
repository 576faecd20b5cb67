"""Recent run history: merge rules and the session/device storage switch."""

from trustgraph.services.history_service import (
    add_entry, merge_histories, parse_history, MAX_HISTORY, DEVICE_COOKIE,
)


def entry(run_id, day, title=''):
    return {'runId': run_id, 'title': title or run_id, 'mode': 'org', 'createdAtISO': f"2026-01-{day:02d}T09:00:00Z"}


class TestHistoryRules:
    def test_add_puts_newest_first(self):
        history = add_entry([entry('a', 1)], entry('b', 2))
        assert [e['runId'] for e in history] == ['b', 'a']

    def test_add_replaces_same_run(self):
        history = add_entry([entry('a', 1, 'Old'), entry('b', 2)], entry('a', 3, 'New'))
        assert [e['runId'] for e in history] == ['a', 'b']
        assert history[0]['title'] == 'New'

    def test_capped(self):
        history = []
        for day in range(1, 15):
            history = add_entry(history, entry(f"run{day}", day))
        assert len(history) == MAX_HISTORY
        assert history[0]['runId'] == 'run14'
        assert history[-1]['runId'] == 'run5'

    def test_merge_keeps_newest_copy(self):
        merged = merge_histories([entry('a', 1, 'Stale'), entry('b', 4)], [entry('a', 5, 'Fresh'), entry('c', 2)])
        assert [e['runId'] for e in merged] == ['a', 'b', 'c']
        assert merged[0]['title'] == 'Fresh'

    def test_merge_skips_invalid_entries(self):
        merged = merge_histories([{'title': 'no run id'}, 'junk'], [entry('a', 1)])
        assert [e['runId'] for e in merged] == ['a']

    def test_parse(self):
        assert parse_history(None) == []
        assert parse_history('not json') == []
        assert parse_history('{"runId": "a"}') == []
        assert parse_history('[{"runId": "a"}]') == [{'runId': 'a'}]


class TestHistoryApi:
    def test_empty(self, client):
        res = client.get('/api/history')
        assert res.status_code == 200
        assert res.get_json()['data'] == {'runs': [], 'rememberDevice': False}

    def test_add_and_list(self, client):
        res = client.post('/api/history', json={'runId': 'r1', 'title': 'Q3 Pulse', 'mode': 'org',
                                                'createdAtISO': '2026-01-01T00:00:00Z'})
        assert res.status_code == 200
        assert [r['runId'] for r in res.get_json()['data']['runs']] == ['r1']

        runs = client.get('/api/history').get_json()['data']['runs']
        assert runs == [{'runId': 'r1', 'title': 'Q3 Pulse', 'mode': 'org', 'createdAtISO': '2026-01-01T00:00:00Z'}]

    def test_run_id_required(self, client):
        res = client.post('/api/history', json={'title': 'nothing'})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'runId is required'

    def test_unknown_mode_defaults_to_org(self, client):
        runs = client.post('/api/history', json={'runId': 'r1', 'mode': 'weird'}).get_json()['data']['runs']
        assert runs[0]['mode'] == 'org'

    def test_remember_device_migrates(self, client):
        client.post('/api/history', json={'runId': 'r1', 'createdAtISO': '2026-01-01T00:00:00Z'})

        res = client.post('/api/history/remember-device', json={'enabled': True})
        assert res.status_code == 200
        assert res.get_json()['data']['rememberDevice'] is True
        assert [r['runId'] for r in res.get_json()['data']['runs']] == ['r1']
        assert any(h.startswith(f"{DEVICE_COOKIE}=") for h in res.headers.getlist('Set-Cookie'))

        client.post('/api/history', json={'runId': 'r2', 'createdAtISO': '2026-01-02T00:00:00Z'})
        data = client.get('/api/history').get_json()['data']
        assert data['rememberDevice'] is True
        assert [r['runId'] for r in data['runs']] == ['r2', 'r1']

    def test_forget_device_moves_history_back(self, client):
        client.post('/api/history/remember-device', json={'enabled': True})
        client.post('/api/history', json={'runId': 'r1', 'createdAtISO': '2026-01-01T00:00:00Z'})

        res = client.post('/api/history/remember-device', json={'enabled': False})
        data = res.get_json()['data']
        assert data['rememberDevice'] is False
        assert [r['runId'] for r in data['runs']] == ['r1']
        assert [r['runId'] for r in client.get('/api/history').get_json()['data']['runs']] == ['r1']

    def test_clear(self, client):
        client.post('/api/history', json={'runId': 'r1'})
        res = client.delete('/api/history')
        assert res.get_json()['data']['runs'] == []
        assert client.get('/api/history').get_json()['data']['runs'] == []

    def test_tampered_device_cookie_is_ignored(self, client):
        client.set_cookie(DEVICE_COOKIE, 'not-signed')
        res = client.get('/api/history')
        assert res.status_code == 200
        assert res.get_json()['data'] == {'runs': [], 'rememberDevice': False}
