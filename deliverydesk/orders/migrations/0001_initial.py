import deliverydesk.orders.models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('drivers', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(default=deliverydesk.orders.models.generate_order_number, max_length=50, unique=True)),
                ('source', models.CharField(choices=[('ADMIN', 'Admin'), ('CUSTOMER', 'Customer')], db_index=True, default='ADMIN', max_length=20)),
                ('customer_name', models.CharField(max_length=200)),
                ('customer_phone', models.CharField(db_index=True, max_length=30)),
                ('customer_location', models.TextField(blank=True)),
                ('province', models.CharField(db_index=True, default='Phnom Penh', max_length=100)),
                ('remark', models.TextField(blank=True)),
                ('state', models.CharField(choices=[('PLACED', 'Placed'), ('DELIVERING', 'Delivering'), ('COMPLETED', 'Completed'), ('RETURNED', 'Returned'), ('CANCELLED', 'Cancelled')], db_index=True, default='PLACED', max_length=20)),
                ('subtotal_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('delivery_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('company_delivery_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('total_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('is_paid', models.BooleanField(default=False)),
                ('is_printed', models.BooleanField(default=False)),
                ('printed_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_driver_name', models.CharField(blank=True, max_length=200)),
                ('order_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('returned_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('payment_proof', models.ImageField(blank=True, null=True, upload_to='payment_proofs/%Y/%m/')),
                ('pickup_proof', models.ImageField(blank=True, null=True, upload_to='pickup_proofs/%Y/%m/')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to=settings.AUTH_USER_MODEL)),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='drivers.driver')),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-order_at', '-id'],
                'indexes': [
                    models.Index(fields=['state', 'order_at'], name='orders_state_order_at_idx'),
                    models.Index(fields=['driver', 'state'], name='orders_driver_state_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_name', models.CharField(max_length=200)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('weight', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=8)),
                ('option_details', models.JSONField(blank=True, null=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.order')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_items', to='catalog.product')),
                ('variant', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_items', to='catalog.productvariant')),
            ],
            options={
                'db_table': 'order_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='BlacklistPhone',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(max_length=30, unique=True)),
                ('reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blacklisted_phones', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'blacklist_phones',
                'ordering': ['-created_at'],
            },
        ),
    ]
