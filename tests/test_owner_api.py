"""Owner tokens: link sign-in, API sign-in, diagnostics and resolution."""

from urllib.parse import urlencode


def owner_link(data, **extra):
    params = {'runId': data['runId'], 'ownerToken': data['ownerToken']}
    params.update(extra)
    return f"/api/auth-owner?{urlencode(params)}"


class TestOwnerLink:
    def test_valid_link_redirects_to_run(self, app, create_org_run):
        data = create_org_run()
        browser = app.test_client()
        res = browser.get(owner_link(data))
        assert res.status_code == 302
        assert res.headers['Location'].endswith(f"/dashboard/surveys/{data['runId']}")
        assert any(h.startswith(f"ti_owner_{data['runId']}=") for h in res.headers.getlist('Set-Cookie'))

        # The cookie is enough to manage the run
        assert browser.get(f"/api/runs/{data['runId']}/links").status_code == 200

    def test_next_path(self, app, create_org_run):
        data = create_org_run()
        target = f"/dashboard/surveys/{data['runId']}/results"
        res = app.test_client().get(owner_link(data, next=target))
        assert res.headers['Location'].endswith(target)

    def test_offsite_next_is_ignored(self, app, create_org_run):
        data = create_org_run()
        res = app.test_client().get(owner_link(data, next='//evil.example.com/'))
        assert res.headers['Location'].endswith(f"/dashboard/surveys/{data['runId']}")

    def test_invalid_token(self, app, create_org_run):
        data = create_org_run()
        browser = app.test_client()
        res = browser.get(f"/api/auth-owner?runId={data['runId']}&ownerToken=wrong")
        assert res.status_code == 302
        assert res.headers['Location'].endswith(f"/?auth=required&role=owner&runId={data['runId']}")
        assert res.headers.getlist('Set-Cookie') == []


class TestOwnerApi:
    def test_sign_in(self, app, create_org_run):
        data = create_org_run()
        browser = app.test_client()
        res = browser.post('/api/auth-owner', json={'runId': data['runId'], 'token': data['ownerToken']})
        assert res.status_code == 200
        assert res.get_json()['data'] == {'ok': True, 'runId': data['runId']}
        assert browser.get(f"/api/runs/{data['runId']}/links").status_code == 200

    def test_missing_fields(self, client):
        res = client.post('/api/auth-owner', json={'runId': 'abc'})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'Missing runId or token'

    def test_wrong_token(self, app, create_org_run):
        data = create_org_run()
        browser = app.test_client()
        res = browser.post('/api/auth-owner', json={'runId': data['runId'], 'token': 'nope'})
        assert res.status_code == 403
        assert res.get_json()['error'] == 'Invalid owner token'
        assert browser.get(f"/api/runs/{data['runId']}/links").status_code == 403

    def test_token_for_another_run(self, app, create_org_run):
        first = create_org_run()
        second = create_org_run()
        res = app.test_client().post('/api/auth-owner', json={
            'runId': first['runId'], 'token': second['ownerToken'],
        })
        assert res.status_code == 403

    def test_tampered_cookie_is_ignored(self, app, create_org_run):
        data = create_org_run()
        browser = app.test_client()
        browser.set_cookie(f"ti_owner_{data['runId']}", 'forged-value')
        assert browser.get(f"/api/runs/{data['runId']}/links").status_code == 403


class TestDiagnostics:
    def test_admin_token_check(self, client, create_org_run):
        data = create_org_run()
        res = client.get(f"/api/admin-token-check?runId={data['runId']}&token={data['ownerToken']}")
        assert res.status_code == 200
        body = res.get_json()['data']
        assert body['found'] is True
        assert body['runIdCol'] == 'run_id'
        assert data['ownerToken'] not in res.get_data(as_text=True)

    def test_admin_token_check_not_found(self, client):
        res = client.get('/api/admin-token-check?runId=x&token=y')
        assert res.status_code == 200
        assert res.get_json()['data']['found'] is False

    def test_resolve_owner(self, client, create_org_run):
        data = create_org_run()
        res = client.post('/api/resolve-owner', json={'token': data['ownerToken']})
        assert res.status_code == 200
        assert res.get_json()['data'] == {'ok': True, 'runId': data['runId']}

    def test_resolve_unknown(self, client):
        res = client.post('/api/resolve-owner', json={'token': 'unknown'})
        assert res.status_code == 404
        assert res.get_json()['error'] == 'Token not found'

    def test_resolve_missing(self, client):
        res = client.post('/api/resolve-owner', json={})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'Missing token'
