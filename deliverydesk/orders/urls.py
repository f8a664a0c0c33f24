from django.urls import path
from . import views

urlpatterns = [
    path('orders/', views.order_list_create, name='order-list-create'),
    path('orders/stats/summary/', views.order_stats_summary, name='order-stats-summary'),
    path('orders/duplicates/phone/', views.order_duplicate_phones, name='order-duplicate-phones'),
    path('orders/batch/phone/', views.order_batch_phone, name='order-batch-phone'),
    path('orders/export/excel/', views.order_export_excel, name='order-export-excel'),
    path('orders/export/pdf/', views.order_export_pdf, name='order-export-pdf'),
    path('orders/<int:pk>/', views.order_detail, name='order-detail'),
    path('orders/<int:pk>/state/', views.order_state, name='order-state'),
    path('orders/<int:pk>/driver/', views.order_driver, name='order-driver'),
    path('orders/<int:pk>/mark-printed/', views.order_mark_printed, name='order-mark-printed'),
    path('orders/<int:pk>/reset-print/', views.order_reset_print, name='order-reset-print'),
    path('orders/<int:pk>/pickup-proof/', views.order_pickup_proof, name='order-pickup-proof'),
    path('orders/<int:pk>/receipt/', views.order_receipt, name='order-receipt'),

    # Storefront orders; the numeric route must come before the order number route
    path('customer-orders/', views.customer_order_list_create, name='customer-order-list-create'),
    path('customer-orders/<int:pk>/', views.customer_order_detail, name='customer-order-detail'),
    path('customer-orders/<str:order_number>/', views.customer_order_by_number, name='customer-order-by-number'),

    path('blacklist-phones/', views.blacklist_list_create, name='blacklist-list-create'),
    path('blacklist-phones/check/', views.blacklist_check, name='blacklist-check'),
    path('blacklist-phones/<int:pk>/', views.blacklist_detail, name='blacklist-detail'),
]
