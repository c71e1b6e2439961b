# apps/reports/views.py

import logging

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.shortcuts import render

from apps.core.permissions import api_requires_module, requires_module
from apps.core.utils import api_success

from . import exports
from .analytics import project_overview

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _attachment(response, filename):
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@login_required
def reports_dashboard(request):
    """Accessible projects with their health, plus export links"""
    projects = request.user.accessible_projects().select_related('department')
    rows = [{'project': project, 'overview': project_overview(project)} for project in projects]

    context = {
        'title': 'Reports',
        'rows': rows,
        'stats': {
            'projects': len(rows),
            'tasks': sum(r['overview']['tasks']['total'] for r in rows),
            'completed': sum(r['overview']['tasks']['completed'] for r in rows),
            'overdue': sum(r['overview']['tasks']['overdue'] for r in rows),
        },
    }
    return render(request, 'reports/dashboard.html', context)


@login_required
@requires_module('overview')
def project_overview_view(request, project_id):
    project = request.project
    context = {
        'title': f'{project.name} - Overview',
        'project': project,
        'overview': project_overview(project),
    }
    return render(request, 'reports/overview.html', context)


@login_required
@requires_module('overview')
def project_pdf(request, project_id):
    project = request.project
    response = HttpResponse(content_type='application/pdf')
    exports.build_project_pdf(project, response)
    logger.info(f"📄 PDF report generated for project {project.id} by {request.user.username}")
    return _attachment(response, exports.export_filename(project, 'pdf'))


@login_required
@requires_module('tasks_milestones')
def tasks_csv(request, project_id):
    project = request.project
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    exports.write_tasks_csv(project, response)
    return _attachment(response, exports.export_filename(project, 'csv'))


@login_required
@requires_module('overview')
def project_excel(request, project_id):
    project = request.project
    response = HttpResponse(exports.build_workbook(project), content_type=XLSX_CONTENT_TYPE)
    return _attachment(response, exports.export_filename(project, 'xlsx'))


@api_requires_module('overview')
def api_overview(request, project_id):
    return api_success(project_overview(request.project))
