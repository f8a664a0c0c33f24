from django.urls import path
from . import views

urlpatterns = [
    path('dashboard/stats/', views.dashboard_stats, name='dashboard-stats'),
    path('dashboard/charts/revenue/', views.revenue_chart, name='dashboard-revenue-chart'),
    path('dashboard/charts/orders/', views.orders_chart, name='dashboard-orders-chart'),
    path('dashboard/sales-report/', views.sales_report, name='dashboard-sales-report'),
]
