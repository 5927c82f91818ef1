"""
Main URL configuration for Artisashop project.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from core import views as core_views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('accounts/', include('allauth.urls')),

    # ==========================================
    # JSON API
    # ==========================================
    path('api/health/', core_views.health_check, name='health'),
    path('api/auth/', include(('apps.users.urls', 'users'), namespace='users')),
    path('api/', include(('apps.shop.urls', 'shop'), namespace='shop')),
    path('api/', include(('apps.messaging.urls', 'messaging'), namespace='messaging')),
    path('api/admin/', include(('apps.moderation.urls', 'moderation'), namespace='moderation')),
]

handler404 = 'core.views.not_found'
handler500 = 'core.views.server_error'

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
