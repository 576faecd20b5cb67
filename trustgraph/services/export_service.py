import csv
import json
from datetime import datetime
from io import StringIO

from trustgraph.models import (
    get_now, iso, Invite, Question, Response, SurveyRun, System, SystemRun, SystemResponse,
)
from trustgraph.services.scoring_service import ScoringService
from trustgraph.utils import mask_token, question_text

SURVEYS_EXPORT_FILENAME = 'trustgraph_surveys_export.csv'
SYSTEMS_EXPORT_FILENAME = 'trustgraph_systems_export.csv'

SURVEYS_EXPORT_HEADER = [
    'survey_title', 'mode', 'status', 'created', 'invite_token', 'question_id',
    'dimension', 'question_text', 'value', 'response_created_at',
]
SYSTEMS_EXPORT_HEADER = [
    'system_name', 'version', 'type', 'environment', 'run_date', 'status',
    'overall_score', 'question_id', 'answer', 'evidence_type', 'evidence_note',
]
SUMMARY_HEADER = [
    'run_id', 'run_title', 'mode', 'respondents', 'overall_mean_1_to_5', 'trustindex_0_to_100',
]
SUMMARY_DIMENSION_HEADER = ['run_id', 'dimension', 'mean_1_to_5', 'score_0_to_100', 'n_answers']


def to_csv_value(value):
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_csv(rows):
    """
    Rows to CSV text. Fields with a comma, quote or newline are quoted with
    inner quotes doubled; lines are joined with a bare newline.
    """
    si = StringIO()
    cw = csv.writer(si, lineterminator='\n')
    for row in rows:
        cw.writerow([to_csv_value(v) for v in row])
    output = si.getvalue()
    si.close()
    return output[:-1] if output.endswith('\n') else output


def export_suffix(client_safe, segmentation):
    return f"{'_client_safe' if client_safe else ''}{'' if segmentation else '_no_seg'}"


def responses_filename(run_id, client_safe, segmentation):
    return f"trustindex_{run_id}_responses{export_suffix(client_safe, segmentation)}.csv"


def summary_filename(run_id, client_safe, segmentation):
    return f"trustindex_{run_id}_summary{export_suffix(client_safe, segmentation)}.csv"


class ExportService:
    @staticmethod
    def responses_csv(run, client_safe=True, segmentation=False):
        invites = {i.token: i for i in Invite.query.filter_by(run_id=run.id).all()}
        questions = {q.id: q for q in Question.query.all()}
        responses = Response.query.filter_by(run_id=run.id).all()
        responses.sort(key=lambda r: r.invite_token + r.question_id)

        header = ['run_id', 'run_title', 'mode', 'invite_token', 'completed',
                  'invite_created_at', 'invite_used_at']
        if segmentation:
            header += ['team', 'level', 'location']
        header += ['question_id', 'dimension', 'question_text', 'value',
                   'response_created_at', 'exported_at']

        exported_at = get_now().isoformat()
        rows = [header]
        for r in responses:
            invite = invites.get(r.invite_token)
            q = questions.get(r.question_id)
            row = [
                r.run_id,
                run.title or '',
                run.mode or '',
                mask_token(r.invite_token) if client_safe else r.invite_token,
                bool(invite and invite.used_at),
                invite.created_at if invite else '',
                invite.used_at if invite else '',
            ]
            if segmentation:
                row += [
                    (invite.team if invite else None) or '',
                    (invite.level if invite else None) or '',
                    (invite.location if invite else None) or '',
                ]
            row += [
                r.question_id,
                q.dimension if q else '',
                question_text(q),
                r.value,
                r.created_at,
                exported_at,
            ]
            rows.append(row)
        return build_csv(rows)

    @staticmethod
    def summary_csv(run):
        trust = ScoringService.trustindex(run.id)
        counts = ScoringService.run_response_counts(run.id)
        rows = [
            SUMMARY_HEADER,
            [
                run.id,
                run.title or '',
                run.mode or '',
                counts['respondents'],
                trust['overall_mean_1_to_5'],
                trust['trustindex_0_to_100'],
            ],
            [],
            SUMMARY_DIMENSION_HEADER,
        ]
        for d in ScoringService.dimension_scores(run.id):
            rows.append([d['run_id'], d['dimension'], d['mean_1_to_5'], d['score_0_to_100'], d['n_answers']])
        return build_csv(rows)

    @staticmethod
    def surveys_bulk_csv(user):
        runs = SurveyRun.query.filter_by(owner_user_id=user.id) \
            .order_by(SurveyRun.opens_at.desc()).all()
        rows = [SURVEYS_EXPORT_HEADER]
        if not runs:
            return build_csv(rows)

        run_map = {r.id: r for r in runs}
        responses = Response.query.filter(Response.run_id.in_(list(run_map))) \
            .order_by(Response.run_id, Response.invite_token, Response.question_id).all()
        for r in responses:
            run = run_map[r.run_id]
            rows.append([
                run.title, run.mode, run.status, iso(run.opens_at),
                r.invite_token, r.question_id,
                r.question.dimension if r.question else '',
                question_text(r.question),
                r.value, iso(r.created_at),
            ])
        return build_csv(rows)

    @staticmethod
    def systems_bulk_csv(user):
        rows = [SYSTEMS_EXPORT_HEADER]
        systems = System.query.filter_by(owner_id=user.id).order_by(System.created_at.desc()).all()
        if not systems:
            return build_csv(rows)

        system_map = {s.id: s for s in systems}
        runs = SystemRun.query.filter(SystemRun.system_id.in_(list(system_map))) \
            .order_by(SystemRun.created_at.desc()).all()
        if not runs:
            return build_csv(rows)

        run_map = {r.id: r for r in runs}
        responses = SystemResponse.query.filter(SystemResponse.run_id.in_(list(run_map))) \
            .order_by(SystemResponse.run_id, SystemResponse.question_id).all()
        for r in responses:
            run = run_map[r.run_id]
            system = system_map[run.system_id]
            evidence = r.evidence or {}
            rows.append([
                system.name,
                run.version_label,
                system.type,
                system.environment,
                iso(run.created_at),
                run.status,
                run.overall_score,
                r.question_id,
                r.answer,
                evidence.get('type'),
                evidence.get('note'),
            ])
        return build_csv(rows)
