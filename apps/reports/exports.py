# apps/reports/exports.py

import csv
from io import BytesIO

import xlsxwriter
from django.conf import settings
from django.utils import timezone
from django.utils.html import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from apps.core.utils import format_status

from .analytics import project_overview

TASK_COLUMNS = ['ID', 'Title', 'Status', 'Priority', 'Milestone', 'Owner', 'Due date', 'Completed at', 'Created at']


def export_filename(project, extension):
    return f"project_{project.name.replace(' ', '_')}.{extension}"


def _task_rows(project):
    tasks = project.tasks.select_related('milestone', 'owner').order_by('id')[:settings.ORBIT_REPORTS_MAX_ROWS]
    for task in tasks:
        yield [
            task.id,
            task.title,
            format_status(task.status),
            task.priority.capitalize(),
            task.milestone.name if task.milestone else '',
            task.owner.display_name if task.owner else '',
            task.due_date,
            task.completed_at,
            task.created_at,
        ]


# === CSV ===

def write_tasks_csv(project, stream):
    """Writes the task list of a project to a text stream (UTF-8 with BOM)"""
    stream.write('\ufeff')
    writer = csv.writer(stream)
    writer.writerow(TASK_COLUMNS)
    for row in _task_rows(project):
        writer.writerow([
            value.strftime('%Y-%m-%d') if hasattr(value, 'strftime') else value
            for value in row
        ])


# === EXCEL ===

def build_workbook(project) -> bytes:
    """Tasks, Milestones and Risks sheets in one XLSX file"""
    output = BytesIO()
    workbook = xlsxwriter.Workbook(output, {'in_memory': True, 'remove_timezone': True})

    header_format = workbook.add_format({
        'bold': True,
        'font_color': 'white',
        'bg_color': '#366092',
        'border': 1
    })
    cell_format = workbook.add_format({'border': 1})
    date_format = workbook.add_format({'num_format': 'yyyy-mm-dd', 'border': 1})

    def write_sheet(name, headers, rows):
        sheet = workbook.add_worksheet(name)
        for col, header in enumerate(headers):
            sheet.write(0, col, header, header_format)
        for row_number, row in enumerate(rows, 1):
            for col, value in enumerate(row):
                if value is None or value == '':
                    sheet.write_blank(row_number, col, None, cell_format)
                elif hasattr(value, 'strftime'):
                    sheet.write_datetime(row_number, col, value, date_format)
                else:
                    sheet.write(row_number, col, value, cell_format)
        sheet.set_column(0, len(headers) - 1, 18)
        return sheet

    write_sheet('Tasks', TASK_COLUMNS, _task_rows(project))

    write_sheet(
        'Milestones',
        ['ID', 'Name', 'Status', 'Due date', 'Tasks', 'Progress %'],
        ([m.id, m.name, format_status(m.status), m.due_date, m.tasks.count(), m.progress()]
         for m in project.milestones.all()),
    )

    write_sheet(
        'Risks',
        ['Code', 'Title', 'Category', 'Likelihood', 'Impact', 'Score', 'Level', 'Status', 'Owner'],
        ([r.risk_code, r.title, r.category, r.likelihood, r.impact, r.risk_score, r.level, r.status, r.owner]
         for r in project.risks.all()),
    )

    workbook.close()
    return output.getvalue()


# === PDF ===

def _styled_table(data, header_color, body_color):
    table = Table(data)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), header_color),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 11),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -1), body_color),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))
    return table


def build_project_pdf(project, stream):
    """Project report: summary, health, tasks, milestones and risks"""
    overview = project_overview(project)
    doc = SimpleDocTemplate(stream, pagesize=A4, title=f"{project.name} report")
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('ReportTitle', parent=styles['Heading1'], fontSize=20, spaceAfter=24,
                                 textColor=colors.darkblue)
    heading_style = ParagraphStyle('ReportHeading', parent=styles['Heading2'], fontSize=14, spaceAfter=10,
                                   textColor=colors.darkblue)

    story = [
        Paragraph(f"Project report: {escape(project.name)}", title_style),
        Paragraph(f"Status: {format_status(project.status)}", styles['Normal']),
        Paragraph(f"Generated at: {timezone.localtime():%Y-%m-%d %H:%M}", styles['Normal']),
        Spacer(1, 20),
    ]

    health = overview['health']
    story.append(Paragraph("Health", heading_style))
    story.append(_styled_table(
        [['Area', 'Score']] + [[area.capitalize(), f"{health[area]}"]
                               for area in ('budget', 'timeline', 'risks', 'team', 'overall')],
        colors.grey, colors.beige,
    ))
    story.append(Spacer(1, 20))

    tasks = overview['tasks']
    story.append(Paragraph("Tasks", heading_style))
    story.append(_styled_table([
        ['Metric', 'Value'],
        ['Total', str(tasks['total'])],
        ['Completed', str(tasks['completed'])],
        ['In progress', str(tasks['in_progress'])],
        ['Blocked', str(tasks['blocked'])],
        ['Overdue', str(tasks['overdue'])],
        ['Average completion (days)', str(tasks['avg_completion_days'])],
    ], colors.blue, colors.lightblue))
    story.append(Spacer(1, 20))

    story.append(Paragraph("Milestones", heading_style))
    milestones = project.milestones.all()
    if milestones:
        story.append(_styled_table(
            [['Milestone', 'Due', 'Status', 'Progress']] + [
                [m.name, m.due_date.isoformat() if m.due_date else '-', format_status(m.status), f"{m.progress()}%"]
                for m in milestones
            ],
            colors.green, colors.lightgreen,
        ))
    else:
        story.append(Paragraph("No milestones in this project.", styles['Normal']))
    story.append(Spacer(1, 20))

    story.append(Paragraph("Risks", heading_style))
    risks = project.risks.all()
    if risks:
        story.append(_styled_table(
            [['Code', 'Title', 'Score', 'Level', 'Status']] + [
                [r.risk_code, r.title[:60], str(r.risk_score or '-'), r.level, r.status] for r in risks
            ],
            colors.red, colors.mistyrose,
        ))
    else:
        story.append(Paragraph("No risks registered.", styles['Normal']))

    budget = overview['budget']
    story.append(Spacer(1, 20))
    story.append(Paragraph("Budget", heading_style))
    story.append(Paragraph(
        f"Allocated {budget['allocated']:,.2f} {budget['currency']} - spent {budget['spent']:,.2f}",
        styles['Normal'],
    ))

    story.append(Spacer(1, 30))
    story.append(Paragraph("Generated by Orbit Workspace", styles['Normal']))

    doc.build(story)
