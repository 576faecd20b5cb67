"""CSV building and the per-run export endpoints."""

import csv
from datetime import datetime
from io import StringIO

from trustgraph.services.export_service import (
    build_csv, to_csv_value, responses_filename, summary_filename,
)


class TestCsvValues:
    def test_scalars(self):
        assert to_csv_value(None) == ''
        assert to_csv_value(True) == 'true'
        assert to_csv_value(False) == 'false'
        assert to_csv_value(4.0) == '4'
        assert to_csv_value(37.5) == '37.5'

    def test_structures_are_json(self):
        assert to_csv_value({'type': 'link'}) == '{"type": "link"}'

    def test_datetimes_are_iso(self):
        assert to_csv_value(datetime(2026, 3, 1, 9, 30)) == '2026-03-01T09:30:00'


class TestBuildCsv:
    def test_quoting(self):
        csv_text = build_csv([
            ['a', 'b,c', 'say "hi"'],
            [None, True, 1.0, {'k': 1}],
        ])
        assert csv_text == 'a,"b,c","say ""hi"""\n,true,1,"{""k"": 1}"'

    def test_newlines_are_quoted(self):
        assert build_csv([['line one\nline two']]) == '"line one\nline two"'

    def test_no_trailing_newline(self):
        assert build_csv([['a'], ['b']]) == 'a\nb'

    def test_parser_reads_rows_back(self):
        rows = [
            ['a', 'b,c', 'q"x', 'l1\nl2', ''],
            ['', 'plain', '"quoted"', 'comma, and "quote"', 'end'],
        ]
        assert list(csv.reader(StringIO(build_csv(rows)))) == rows


class TestFilenames:
    def test_responses(self):
        assert responses_filename('r1', True, False) == 'trustindex_r1_responses_client_safe_no_seg.csv'
        assert responses_filename('r1', False, True) == 'trustindex_r1_responses.csv'

    def test_summary(self):
        assert summary_filename('r1', True, True) == 'trustindex_r1_summary_client_safe.csv'
        assert summary_filename('r1', False, False) == 'trustindex_r1_summary_no_seg.csv'


class TestRunExports:
    def _run_with_one_response(self, client, create_org_run, all_answers):
        data = create_org_run(invite_count=5, team='Platform')
        res = client.post(f"/survey/{data['tokens'][0]}", json={'answers': all_answers(4)})
        assert res.status_code == 200
        return data

    def test_responses_are_client_safe_by_default(self, client, create_org_run, all_answers):
        data = self._run_with_one_response(client, create_org_run, all_answers)
        token = data['tokens'][0]

        res = client.get(f"/api/runs/{data['runId']}/export/responses")
        assert res.status_code == 200
        assert res.mimetype == 'text/csv'
        assert f"trustindex_{data['runId']}_responses_client_safe_no_seg.csv" in res.headers['Content-disposition']

        lines = res.get_data(as_text=True).split('\n')
        assert lines[0].startswith('run_id,run_title,mode,invite_token,completed')
        assert 'team' not in lines[0]
        assert len(lines) == 21
        body = res.get_data(as_text=True)
        assert token not in body
        assert f"{token[:6]}…{token[-4:]}" in body

    def test_full_tokens_and_segmentation(self, client, create_org_run, all_answers):
        data = self._run_with_one_response(client, create_org_run, all_answers)

        res = client.get(f"/api/runs/{data['runId']}/export/responses?client_safe=0&segmentation=1")
        assert res.status_code == 200
        assert f"trustindex_{data['runId']}_responses.csv" in res.headers['Content-disposition']
        body = res.get_data(as_text=True)
        assert data['tokens'][0] in body
        assert ',team,level,location,' in body.split('\n')[0]
        assert ',Platform,' in body.split('\n')[1]

    def test_summary(self, client, create_org_run, all_answers):
        data = self._run_with_one_response(client, create_org_run, all_answers)

        res = client.get(f"/api/runs/{data['runId']}/export/summary")
        assert res.status_code == 200
        lines = res.get_data(as_text=True).split('\n')
        assert lines[0] == 'run_id,run_title,mode,respondents,overall_mean_1_to_5,trustindex_0_to_100'
        assert lines[1] == f"{data['runId']},Q3 Pulse,org,1,4,75"
        assert lines[2] == ''
        assert lines[3] == 'run_id,dimension,mean_1_to_5,score_0_to_100,n_answers'
        assert lines[4] == f"{data['runId']},Transparency,4,75,4"
        assert len(lines) == 9

    def test_requires_run_access(self, app, client, create_org_run):
        data = create_org_run(invite_count=5)
        stranger = app.test_client()
        res = stranger.get(f"/api/runs/{data['runId']}/export/responses")
        assert res.status_code == 403
        assert res.get_json()['error'] == 'Not authorised'
