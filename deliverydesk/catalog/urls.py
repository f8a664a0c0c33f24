from django.urls import path
from . import views

urlpatterns = [
    # Categories
    path('categories/', views.category_list_create, name='category-list-create'),
    path('categories/all/', views.category_all, name='category-all'),
    path('categories/<int:pk>/', views.category_detail, name='category-detail'),

    # Products
    path('products/', views.product_list_create, name='product-list-create'),
    path('products/variants/<int:pk>/', views.variant_detail, name='variant-detail'),
    path('products/<int:pk>/', views.product_detail, name='product-detail'),
    path('products/<int:pk>/note/', views.product_note, name='product-note'),
    path('products/<int:product_id>/variants/', views.variant_list_create, name='variant-list-create'),

    # Option groups and options
    path('product-options/groups/<int:pk>/', views.option_group_detail, name='option-group-detail'),
    path('product-options/groups/<int:group_id>/options/', views.option_list_create, name='option-list-create'),
    path('product-options/options/<int:pk>/', views.option_detail, name='option-detail'),
    path('product-options/variants/bulk-update-stock/', views.variant_bulk_stock_update, name='variant-bulk-stock-update'),
    path('product-options/variants/<int:pk>/stock/', views.variant_stock_update, name='variant-stock-update'),
    path('product-options/validate-stock/', views.validate_stock, name='validate-stock'),
    path('product-options/<int:product_id>/groups/', views.option_group_list_create, name='option-group-list-create'),
    path('product-options/<int:product_id>/hierarchical-stock/', views.hierarchical_stock, name='hierarchical-stock'),
    path('product-options/<int:product_id>/generate-variants/', views.product_generate_variants, name='generate-variants'),
    path('product-options/<int:product_id>/stock-summary/', views.product_stock_summary, name='stock-summary'),
    path('product-options/<int:product_id>/validate-hierarchy/', views.product_validate_hierarchy, name='validate-hierarchy'),
    path('product-options/<int:product_id>/variants/', views.hierarchical_variants, name='hierarchical-variants'),

    # Public storefront
    path('public/products/', views.public_product_list, name='public-product-list'),
    path('public/products/<int:pk>/', views.public_product_detail, name='public-product-detail'),
    path('public/categories/', views.public_category_list, name='public-category-list'),
]
