import os
import io
import logging
from datetime import datetime
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image

from feedback_portal.config import INSTITUTION_NAME, REPORT_FOOTER, ALL

logger = logging.getLogger(__name__)


def _question_keys(rows):
    keys = {k for row in rows for k in row.question_average_ratings}
    return sorted(keys, key=lambda k: int(''.join(filter(str.isdigit, k)) or 0))


def _fmt(value, digits=2):
    return '-' if value is None else f"{value:.{digits}f}"


def create_score_graph(rows):
    """
    Create a bar graph image of the average rating of every report row.
    """
    references = [f"S{i}" for i in range(1, len(rows) + 1)]
    averages = [row.average_rating or 0 for row in rows]

    plt.rcParams['figure.dpi'] = 300
    fig, ax = plt.subplots(figsize=(10, 4))
    bars = ax.bar(references, averages, color='#007bff')

    ax.set_xlabel('')
    ax.set_ylabel('')
    ax.set_title('')
    ax.set_ylim(0, 5)

    plt.xticks(fontsize=9)
    plt.yticks(fontsize=9)

    for bar, average in zip(bars, averages):
        height = bar.get_height()
        ax.text(bar.get_x() + bar.get_width()/2.0, height,
                f'{average:.2f}',
                ha='center', va='bottom',
                fontsize=9)

    ax.grid(True, axis='y', linestyle='--', alpha=0.7)
    plt.tight_layout()

    buf = io.BytesIO()
    plt.savefig(buf, format='png', bbox_inches='tight', dpi=300)
    plt.close(fig)
    buf.seek(0)
    return buf


class FooterCanvas:
    def __init__(self, canvas, doc):
        self.canvas = canvas
        self.doc = doc

    def draw_footer(self):
        self.canvas.saveState()
        generated = f"Generated on {datetime.now().strftime('%d-%m-%Y %H:%M')}"
        self.canvas.setFont("Helvetica", 7)
        self.canvas.setFillColor(colors.gray)

        self.canvas.drawString(25, 20, generated)
        self.canvas.drawCentredString(self.doc.pagesize[0]/2, 20, REPORT_FOOTER)

        page = f"Page {self.doc.page}"
        right_text_width = self.canvas.stringWidth(page, "Helvetica", 7)
        self.canvas.drawString(self.doc.pagesize[0] - right_text_width - 25, 20, page)

        self.canvas.restoreState()


def _styles():
    styles = getSampleStyleSheet()
    return {
        'title': ParagraphStyle('CustomTitle', parent=styles['Heading1'], fontSize=12,
                                alignment=1, spaceAfter=2),
        'subtitle': ParagraphStyle('CustomSubTitle', parent=styles['Normal'], fontSize=10,
                                   alignment=1, spaceAfter=2),
        'info': ParagraphStyle('InfoStyle', parent=styles['Normal'], fontSize=9,
                               alignment=1, spaceAfter=4),
        'small': ParagraphStyle('SmallStyle', parent=styles['Normal'], fontSize=8, leading=9),
        'reference': ParagraphStyle('ReferenceStyle', parent=styles['Normal'], fontSize=8,
                                    leading=9, leftIndent=20),
        'reference_title': ParagraphStyle('ReferenceTitle', parent=styles['Normal'], fontSize=9,
                                          leading=10, fontName='Helvetica-Bold'),
    }


TABLE_STYLE = [
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('FONTSIZE', (0, 0), (-1, -1), 8),
    ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
    ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('TOPPADDING', (0, 0), (-1, -1), 1),
    ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
    ('LEFTPADDING', (0, 0), (-1, -1), 2),
    ('RIGHTPADDING', (0, 0), (-1, -1), 2),
]


def _header(elements, styles, heading, department, feedback_round):
    elements.append(Paragraph(INSTITUTION_NAME, styles['title']))
    elements.append(Paragraph(heading, styles['subtitle']))
    round_label = 'ALL ROUNDS' if feedback_round in (None, '', ALL) else f"ROUND {feedback_round}"
    info = f"Department: {department or ALL}    Feedback: {round_label}"
    elements.append(Paragraph(info, styles['info']))
    elements.append(Spacer(1, 3))


def _build(doc, elements, filepath):
    def footer_func(canvas, doc):
        FooterCanvas(canvas, doc).draw_footer()

    try:
        doc.build(elements, onFirstPage=footer_func, onLaterPages=footer_func)
        logger.info(f"Report saved: {filepath}")
        return filepath
    except Exception as e:
        logger.error(f"PDF generation failed: {str(e)}")
        raise


def generate_summary_report(rows, department=None, feedback_round=None, output_path=None):
    """Generate the tabular department summary with a score graph.

    rows are ReportRow objects in display order.
    """
    filepath = os.path.abspath(
        output_path or f"feedback_report_{(department or ALL).replace(' ', '_')}_{feedback_round or ALL}.pdf"
    )
    logger.info(f"Generating summary report: {filepath}")

    doc = SimpleDocTemplate(filepath, pagesize=landscape(A4), rightMargin=20,
                            leftMargin=20, topMargin=20, bottomMargin=40)
    styles = _styles()
    elements = []
    _header(elements, styles, "STUDENT'S FEEDBACK ON COURSE DELIVERY", department, feedback_round)

    keys = _question_keys(rows)
    table_data = [['Ref', 'Faculty', 'Subject', 'Class', 'Div', 'Batch']
                  + [k.upper() for k in keys] + ['TH', 'PR', 'Avg', 'N']]
    for index, row in enumerate(rows, 1):
        table_data.append(
            [f"S{index}", row.faculty_name, row.subject_name, row.class_name, row.division, row.batch]
            + [_fmt(row.question_average_ratings.get(k)) for k in keys]
            + [_fmt(row.theory_average), _fmt(row.practical_average),
               _fmt(row.average_rating), str(row.total_feedbacks)]
        )

    table = Table(table_data, repeatRows=1)
    table.setStyle(TableStyle(TABLE_STYLE + [('ALIGN', (1, 1), (2, -1), 'LEFT')]))
    elements.append(table)
    elements.append(Spacer(1, 5))

    if rows:
        img = Image(create_score_graph(rows))
        img.drawWidth = landscape(A4)[0] - 80
        img.drawHeight = 2.5 * inch
        elements.append(img)
        elements.append(Spacer(1, 5))

        elements.append(Paragraph("References:", styles['reference_title']))
        for index, row in enumerate(rows, 1):
            elements.append(Paragraph(f"S{index}: {row.faculty_name} - {row.subject_name}",
                                      styles['reference']))
    else:
        elements.append(Paragraph("No feedback found for the selected criteria.", styles['info']))

    elements.append(Spacer(1, 40))
    elements.append(Table(
        [["Class Teacher", "HOD", "Principal"]],
        colWidths=[doc.width/3.0]*3,
        style=TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
        ])
    ))

    return _build(doc, elements, filepath)


def generate_analysis_report(report, department=None, feedback_round=None, output_path=None):
    """Generate the department analysis report (X, Y, Z columns and SD)."""
    filepath = os.path.abspath(
        output_path or f"analysis_report_{(department or ALL).replace(' ', '_')}_{feedback_round or ALL}.pdf"
    )
    logger.info(f"Generating analysis report: {filepath}")

    doc = SimpleDocTemplate(filepath, pagesize=A4, rightMargin=20,
                            leftMargin=20, topMargin=20, bottomMargin=40)
    styles = _styles()
    elements = []
    _header(elements, styles, "DEPARTMENT FEEDBACK ANALYSIS REPORT", department, feedback_round)

    table_data = [['Sr', 'Faculty', 'TH', 'PR', 'Total', 'X', 'Y', 'Z']]
    for index, item in enumerate(report.rows, 1):
        row = item.row
        table_data.append([
            str(index), row.faculty_name,
            _fmt(row.theory_average), _fmt(row.practical_average),
            _fmt(item.total_score), _fmt(item.x), _fmt(item.y, 4), _fmt(item.z, 4),
        ])

    stats = report.stats
    table_data.append(['', 'Grand mean', '', '', '', _fmt(stats.grand_mean), '', ''])
    table_data.append(['', 'Sum of Z', '', '', '', '', '', _fmt(stats.total_z, 4)])

    table = Table(table_data, repeatRows=1)
    table.setStyle(TableStyle(TABLE_STYLE + [('ALIGN', (1, 1), (1, -1), 'LEFT')]))
    elements.append(table)
    elements.append(Spacer(1, 8))

    summary = (f"n (filled score cells) = {stats.total_entries}    "
               f"Standard deviation = sqrt(Sum of Z / n) = {_fmt(stats.standard_deviation, 4)}")
    elements.append(Paragraph(summary, styles['info']))

    return _build(doc, elements, filepath)
