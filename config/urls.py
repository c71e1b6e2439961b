# config/urls.py

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Apps
    path('', include('apps.core.urls')),
    path('', include('apps.board.urls')),
    path('', include('apps.workspace.urls')),
    path('', include('apps.capacity.urls')),
    path('', include('apps.budget.urls')),
    path('', include('apps.reports.urls')),

    path('home/', RedirectView.as_view(pattern_name='core:dashboard', permanent=False)),
]

# Media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

    if 'debug_toolbar' in settings.INSTALLED_APPS:
        import debug_toolbar

        urlpatterns = [path('__debug__/', include(debug_toolbar.urls))] + urlpatterns

admin.site.index_title = 'Workspace administration'
