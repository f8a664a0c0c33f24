from django.core.management.base import BaseCommand
from django.db import transaction
from deliverydesk.catalog.models import Product, ProductOption
from deliverydesk.catalog.services import option_stock_from_variants


class Command(BaseCommand):
    help = 'Compare option stock with the summed stock of the active variants that contain each option'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Copy the variant totals into option stock',
        )
        parser.add_argument(
            '--product',
            type=int,
            help='Only check this product id',
        )

    def handle(self, *args, **options):
        fix = options['fix']
        products = Product.objects.filter(variants__isnull=False).distinct().order_by('id')
        if options.get('product'):
            products = products.filter(pk=options['product'])

        self.stdout.write(f'Checking {products.count()} products with variants')
        if not fix:
            self.stdout.write(self.style.WARNING('Report only - run with --fix to update option stock'))

        mismatches = 0
        fixed = 0
        for product in products:
            totals = option_stock_from_variants(product)
            product_options = ProductOption.objects.filter(group__product=product).select_related('group')
            for option in product_options:
                expected = totals.get(option.id, 0)
                if option.stock == expected:
                    continue
                mismatches += 1
                self.stdout.write(
                    f'  {product.name} / {option.group.name}: {option.name} '
                    f'option stock {option.stock}, variants {expected}'
                )
                if fix:
                    with transaction.atomic():
                        option.stock = expected
                        option.save(update_fields=['stock', 'updated_at'])
                    fixed += 1

        if mismatches == 0:
            self.stdout.write(self.style.SUCCESS('Option stock matches variant stock'))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f'Fixed {fixed} of {mismatches} mismatched options'))
        else:
            self.stdout.write(self.style.WARNING(f'Found {mismatches} mismatched options'))
