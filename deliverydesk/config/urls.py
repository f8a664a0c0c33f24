"""
URL configuration for the deliverydesk project.

Every app is mounted under api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "DeliveryDesk Admin Panel"
admin.site.site_title = "DeliveryDesk Admin Portal"
admin.site.index_title = "Delivery operations"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('deliverydesk.core.urls')),
    path('api/v1/', include('deliverydesk.catalog.urls')),
    path('api/v1/', include('deliverydesk.drivers.urls')),
    path('api/v1/', include('deliverydesk.orders.urls')),
    path('api/v1/', include('deliverydesk.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
