from fpdf import FPDF
from fpdf.enums import XPos, YPos
from flask import current_app

from trustgraph.question_bank import SYSTEM_DIMENSIONS
from trustgraph.services.scoring_service import band_for, tier_for_score

# Core PDF fonts only cover latin-1
LATIN1_REPLACEMENTS = {
    '\u2013': '-', '\u2014': '-',
    '\u2018': "'", '\u2019': "'",
    '\u201c': '"', '\u201d': '"',
    '\u2022': '-', '\u2026': '...',
    '\u00a0': ' ', '\u200b': '',
    '\u00d7': 'x',
}


def sanitize(text):
    if text is None:
        return ''
    text = str(text)
    for src, dst in LATIN1_REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text.encode('latin-1', 'replace').decode('latin-1')


class ReportPDF(FPDF):
    def __init__(self, title, subtitle=''):
        super().__init__()
        self.report_title = sanitize(title)
        self.report_subtitle = sanitize(subtitle)
        self.set_auto_page_break(auto=True, margin=20)

    def header(self):
        self.set_font('Helvetica', 'B', 18)
        self.set_text_color(0, 0, 0)
        self.cell(60, 10, 'TrustGraph', 0, 0, 'L')

        self.set_font('Helvetica', 'B', 11)
        self.cell(0, 10, self.report_title, 0, 1, 'R')

        if self.report_subtitle:
            self.set_font('Helvetica', '', 9)
            self.set_text_color(100, 100, 100)
            self.cell(0, 5, self.report_subtitle, 0, 1, 'R')

        self.set_draw_color(200, 200, 200)
        self.set_line_width(0.5)
        self.line(10, 28, 200, 28)
        self.set_y(32)

    def footer(self):
        self.set_y(-15)
        self.set_font('Helvetica', 'I', 8)
        self.set_text_color(128)
        self.cell(0, 10, f"TrustGraph - Confidential | Page {self.page_no()} of {{nb}}", 0, 0, 'C')

    def section(self, title):
        self.ln(4)
        self.set_font('Helvetica', 'B', 12)
        self.set_text_color(0)
        self.cell(0, 8, sanitize(title), 0, 1, 'L')
        self.set_font('Helvetica', '', 10)

    def paragraph(self, text, style=''):
        self.set_font('Helvetica', style, 10)
        self.multi_cell(0, 5, sanitize(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(1)

    def score_row(self, label, value, detail=''):
        self.set_font('Helvetica', '', 10)
        self.cell(80, 7, sanitize(label), 0, 0, 'L')
        self.set_font('Helvetica', 'B', 10)
        self.cell(30, 7, sanitize('-' if value is None else value), 0, 0, 'R')
        self.set_font('Helvetica', '', 9)
        self.cell(0, 7, sanitize(detail), 0, 1, 'L')


class PdfService:
    @staticmethod
    def survey_report(run, counts, trust, dimensions, summary=None):
        """
        Results report for a survey run. `summary` is the executive summary
        dict and is omitted when there is not enough data to build it.
        """
        current_app.logger.info(f"Generating results PDF for run {run.id}")
        try:
            pdf = ReportPDF('Trust Index Report', run.title)
            pdf.alias_nb_pages()
            pdf.add_page()

            score = trust.get('trustindex_0_to_100')
            pdf.section('Overview')
            pdf.score_row('Mode', 'Explorer' if run.is_explorer else 'Organisational')
            pdf.score_row('Respondents', counts.get('respondents', 0))
            pdf.score_row('Answers', counts.get('answers', 0))
            if score is not None:
                tier = tier_for_score(score)
                band = band_for(score)
                pdf.score_row('TrustIndex (0-100)', score, tier['label'])
                pdf.paragraph(f"{band['label']}: {band['summary']}")

            pdf.section('Dimensions')
            for d in dimensions:
                pdf.score_row(d['dimension'], d['score_0_to_100'], f"mean {d['mean_1_to_5']} / n={d['n_answers']}")

            if summary:
                pdf.section('Executive summary')
                pdf.paragraph(summary['headline'])
                pdf.paragraph(summary['posture'])
                for driver in summary['primary_drivers']:
                    pdf.paragraph(f"- {driver['label']} ({driver['score']}): {driver['why']}")
                pdf.section('Priorities')
                for priority in summary['priorities']:
                    pdf.paragraph(priority['title'], style='B')
                    pdf.paragraph(priority['rationale'])
                    for probe in priority['probes']:
                        pdf.paragraph(f"- {probe}")
                pdf.paragraph(summary['confidence_note'])

            return bytes(pdf.output())
        except Exception as e:
            current_app.logger.error(f"Error generating results PDF: {str(e)}")
            raise

    @staticmethod
    def system_run_report(system, run, recommendations):
        current_app.logger.info(f"Generating assessment PDF for system run {run.id}")
        try:
            subtitle = system.name
            if run.version_label:
                subtitle = f"{system.name} ({run.version_label})"
            pdf = ReportPDF('System Assessment', subtitle)
            pdf.alias_nb_pages()
            pdf.add_page()

            pdf.section('Overview')
            pdf.score_row('Status', run.status)
            pdf.score_row('Overall score', run.overall_score)
            if run.submitted_at:
                pdf.score_row('Submitted', run.submitted_at.strftime('%Y-%m-%d'))

            scores = run.dimension_scores or {}
            pdf.section('Dimensions')
            for dim in SYSTEM_DIMENSIONS:
                pdf.score_row(dim, scores.get(dim))

            if run.risk_flags:
                pdf.section('Risk flags')
                for flag in run.risk_flags:
                    pdf.paragraph(f"- {flag['label']}: {flag['description']}")

            if recommendations:
                pdf.section('Recommendations')
                for rec in recommendations:
                    pdf.paragraph(f"[{rec['priority'].upper()}] {rec['question_id']} {rec['control']}", style='B')
                    pdf.paragraph(rec['recommendation'])

            return bytes(pdf.output())
        except Exception as e:
            current_app.logger.error(f"Error generating assessment PDF: {str(e)}")
            raise
