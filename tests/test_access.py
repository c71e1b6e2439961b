# tests/test_access.py

import pytest
from django.core.exceptions import PermissionDenied, ValidationError
from django.urls import reverse

from apps.core import services
from apps.core.models import ModuleAccessAudit, ModulePermission
from apps.core.permissions import WorkspacePermissions

pytestmark = pytest.mark.django_db


class TestPermissionRules:
    def test_owner_and_admin_have_full_access(self, project, coordinator, workspace_admin):
        for user in (coordinator, workspace_admin):
            assert WorkspacePermissions.has_module_permission(user, project, 'budget', 'write')

    def test_read_does_not_satisfy_write(self, project, member, grant):
        grant(member, 'risk_register', 'read')

        assert WorkspacePermissions.has_module_permission(member, project, 'risk_register', 'read')
        assert not WorkspacePermissions.has_module_permission(member, project, 'risk_register', 'write')
        assert not WorkspacePermissions.has_module_permission(member, project, 'kanban', 'read')

    def test_write_satisfies_read(self, project, member, grant):
        grant(member, 'kanban', 'write')
        assert WorkspacePermissions.has_module_permission(member, project, 'kanban', 'read')

    def test_module_map(self, project, member, grant):
        grant(member, 'kanban', 'write')
        grant(member, 'budget', 'read')

        levels = WorkspacePermissions.module_permissions_for(member, project)
        assert levels['kanban'] == 'write'
        assert levels['budget'] == 'read'
        assert levels['roadmap'] is None
        assert set(levels) == set(ModulePermission.module_names())

    def test_accessible_projects(self, project, member, outsider, workspace_admin, grant):
        grant(member, 'overview')

        assert list(member.accessible_projects()) == [project]
        assert list(outsider.accessible_projects()) == []
        assert project in workspace_admin.accessible_projects()


class TestGrantAndRevoke:
    def test_grant_is_case_insensitive_and_idempotent(self, project, member, coordinator):
        services.grant_access(project, 'MORGAN@orbit.test', 'kanban', 'read', coordinator)
        services.grant_access(project, 'morgan@orbit.test', 'kanban', 'write', coordinator)

        permission = ModulePermission.objects.get(project=project, user=member, module='kanban')
        assert permission.access_level == 'write'
        assert list(ModuleAccessAudit.objects.filter(user=member).order_by('id')
                    .values_list('access_type', flat=True)) == ['granted', 'updated']

    def test_unknown_email(self, project, coordinator):
        with pytest.raises(ValidationError):
            services.grant_access(project, 'nobody@orbit.test', 'kanban', 'read', coordinator)

    def test_unknown_module(self, project, member, coordinator):
        with pytest.raises(ValidationError):
            services.grant_access(project, member.email, 'payroll', 'read', coordinator)

    def test_only_owner_or_admin_can_grant(self, project, member, outsider, grant):
        grant(member, 'kanban', 'write')
        with pytest.raises(PermissionDenied):
            services.grant_access(project, outsider.email, 'kanban', 'read', member)

    def test_admin_can_grant(self, project, member, workspace_admin):
        permission = services.grant_access(project, member.email, 'budget', 'read', workspace_admin)
        assert permission.granted_by == workspace_admin

    def test_update_and_revoke_are_audited(self, project, member, coordinator, grant):
        permission = grant(member, 'stakeholders', 'read')
        services.update_access(permission, 'write', coordinator)
        services.revoke_access(permission, coordinator)

        assert not ModulePermission.objects.filter(project=project, user=member).exists()
        audits = ModuleAccessAudit.objects.filter(user=member, module='stakeholders').order_by('id')
        assert [a.access_type for a in audits] == ['granted', 'updated', 'revoked']
        assert audits[1].metadata == {'previous_level': 'read'}


class TestViews:
    def test_module_without_permission_redirects_to_project(self, client_for, member, project, grant):
        grant(member, 'overview')
        response = client_for(member).get(reverse('workspace:risks', args=[project.id]))

        assert response.status_code == 302
        assert response.url == reverse('core:project_detail', args=[project.id])

    def test_anonymous_is_sent_to_login(self, client, project):
        response = client.get(reverse('board:kanban', args=[project.id]))
        assert response.status_code == 302
        assert reverse('core:login') in response.url

    def test_viewing_a_module_is_audited_for_members(self, client_for, member, project, grant):
        grant(member, 'kanban')
        client_for(member).get(reverse('board:kanban', args=[project.id]))
        assert ModuleAccessAudit.objects.filter(user=member, module='kanban', access_type='viewed').exists()

    def test_access_page_is_for_owners(self, client_for, member, coordinator, project, grant):
        grant(member, 'kanban')
        assert client_for(coordinator).get(reverse('core:project_access', args=[project.id])).status_code == 200
        assert client_for(member).get(reverse('core:project_access', args=[project.id])).status_code == 302


class TestApi:
    def test_anonymous_gets_401(self, client, project):
        response = client.get(reverse('board:api_tasks', args=[project.id]))
        assert response.status_code == 401
        assert response.json() == {'success': False, 'error': 'Authentication required', 'code': 'UNAUTHENTICATED'}

    def test_missing_project_gets_404(self, api_for, coordinator):
        response = api_for(coordinator).get(reverse('board:api_tasks', args=[9999]))
        assert response.status_code == 404
        assert response.json_body['code'] == 'NOT_FOUND'

    def test_forbidden_module_gets_403(self, api_for, outsider, project):
        response = api_for(outsider).get(reverse('board:api_tasks', args=[project.id]))
        assert response.status_code == 403
        assert response.json_body['code'] == 'FORBIDDEN'

    def test_grant_through_api(self, api_for, coordinator, member, project):
        api = api_for(coordinator)
        created = api.post(reverse('core:api_project_access', args=[project.id]),
                           {'email': member.email, 'module': 'budget', 'access_level': 'read'})
        assert created.status_code == 201
        assert created.json_body['data']['user']['email'] == member.email

        listing = api.get(reverse('core:api_project_access', args=[project.id]))
        assert [p['module'] for p in listing.json_body['data']] == ['budget']

    def test_member_cannot_grant_through_api(self, api_for, member, outsider, project, grant):
        grant(member, 'overview')
        response = api_for(member).post(reverse('core:api_project_access', args=[project.id]),
                                        {'email': outsider.email, 'module': 'overview', 'access_level': 'read'})
        assert response.status_code == 403
        assert response.json_body['success'] is False

    def test_invalid_grant_is_400(self, api_for, coordinator, project):
        response = api_for(coordinator).post(reverse('core:api_project_access', args=[project.id]),
                                             {'email': 'ghost@orbit.test', 'module': 'budget', 'access_level': 'read'})
        assert response.status_code == 400
        assert response.json_body['code'] == 'VALIDATION_ERROR'

    def test_my_permissions(self, api_for, member, project, grant):
        grant(member, 'kanban', 'write')
        response = api_for(member).get(reverse('core:api_my_permissions', args=[project.id]))

        data = response.json_body['data']
        assert data['is_owner'] is False
        assert data['modules']['kanban'] == 'write'
        assert data['modules']['budget'] is None

    def test_project_list_only_shows_accessible(self, api_for, member, coordinator, project):
        services.create_project(coordinator, {'name': 'Hidden'})
        response = api_for(member).get(reverse('core:api_projects'))
        assert response.json_body['data'] == []

    def test_health(self, client):
        response = client.get(reverse('core:health'))
        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'
