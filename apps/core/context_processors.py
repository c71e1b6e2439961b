# apps/core/context_processors.py

from apps import __version__


def workspace(request):
    """Values every template can rely on"""
    user = getattr(request, 'user', None)
    return {
        'app_name': 'Orbit Workspace',
        'app_version': __version__,
        'is_workspace_admin': bool(user and user.is_authenticated and user.is_workspace_admin),
    }
