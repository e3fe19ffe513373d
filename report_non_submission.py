import os
import logging
from datetime import datetime
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle

from feedback_portal.config import INSTITUTION_NAME, REPORT_FOOTER
from feedback_portal.models.feedback import FeedbackStore
from feedback_portal.models.student import Student
from feedback_portal.utils import is_unrestricted

logger = logging.getLogger(__name__)


def find_non_submissions(department, class_name=None, division=None, feedback_round=None,
                         record_store=None):
    """
    Return (eligible_students, non_submitted) for a section.

    A student counts as submitted when a rating record exists for the round,
    or for any round when no round is given.
    """
    record_store = record_store or FeedbackStore()
    feedback_round = None if is_unrestricted(feedback_round) else str(feedback_round)
    class_name = None if is_unrestricted(class_name) else class_name
    division = None if is_unrestricted(division) else division

    students = Student.get_by_section(department, class_name, division, eligible_only=True)
    submitted = record_store.submitted_student_ids(feedback_round)
    non_submitted = [s for s in students if s.id not in submitted]

    logger.info(f"Total eligible students: {len(students)}")
    logger.info(f"Non-submissions: {len(non_submitted)}")
    return students, non_submitted


def generate_non_submission_report(department, class_name=None, division=None,
                                   feedback_round=None, output_path=None):
    """
    Generate a PDF report of eligible students who have not submitted feedback.
    """
    logger.info(f"Processing feedback submissions for '{department}' "
                f"{class_name or ''} {division or ''} round '{feedback_round or 'All'}'")
    students, non_submitted = find_non_submissions(department, class_name, division, feedback_round)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"non_submission_report_{department.replace(' ', '_')}_{timestamp}.pdf"
    pdf_path = os.path.abspath(output_path or filename)

    styles = getSampleStyleSheet()
    footer_style = ParagraphStyle('FooterStyle', parent=styles['Italic'], textColor=colors.grey,
                                  fontSize=8, alignment=1)

    def add_footer(canvas, doc):
        canvas.saveState()
        footer = Paragraph(REPORT_FOOTER, footer_style)
        footer.wrap(doc.width, doc.bottomMargin)
        footer.drawOn(canvas, doc.leftMargin, doc.bottomMargin/3)
        canvas.restoreState()

    doc = SimpleDocTemplate(pdf_path, pagesize=A4, rightMargin=36, leftMargin=36,
                            topMargin=36, bottomMargin=36)

    centered = {name: ParagraphStyle(f"Centered{name}", parent=styles[name], alignment=1)
                for name in ('Heading1', 'Heading2', 'Heading3', 'Normal')}
    content = [
        Paragraph(INSTITUTION_NAME, centered['Heading1']),
        Spacer(1, 12),
        Paragraph("Students Who Have Not Submitted Feedback", centered['Heading2']),
        Spacer(1, 12),
    ]

    section = f"Department: {department}"
    if not is_unrestricted(class_name):
        section += f" | Class: {class_name}"
    if not is_unrestricted(division):
        section += f" | Division: {division}"
    section += f" | Round: {'All' if is_unrestricted(feedback_round) else feedback_round}"
    content.append(Paragraph(section, centered['Heading3']))
    content.append(Spacer(1, 12))
    content.append(Paragraph(f"Generated on: {datetime.now().strftime('%d-%m-%Y %H:%M:%S')}",
                             centered['Normal']))
    content.append(Spacer(1, 24))

    total = len(students)
    not_submitted = len(non_submitted)
    content.append(Paragraph(
        f"Total Students: {total} | Submitted: {total - not_submitted} | Not Submitted: {not_submitted}",
        centered['Normal']
    ))
    content.append(Spacer(1, 24))

    if non_submitted:
        table_data = [['#', 'GR No.', 'Username', 'Class', 'Division', 'Batch']]
        for i, student in enumerate(non_submitted, 1):
            table_data.append([i, student.gr_no, student.username, student.class_name,
                               student.division, student.practical_batch])

        table = Table(table_data, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightblue),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 11),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))
        content.append(table)
    else:
        content.append(Paragraph("All students have submitted their feedback!", centered['Heading3']))

    doc.build(content, onFirstPage=add_footer, onLaterPages=add_footer)
    logger.info(f"Report generated: {pdf_path}")
    return pdf_path
