from django.urls import path
from . import views

urlpatterns = [
    path('drivers/', views.driver_list_create, name='driver-list-create'),
    path('drivers/all/', views.driver_all, name='driver-all'),
    path('drivers/<int:pk>/', views.driver_detail, name='driver-detail'),
]
