"""
Test suite for Reports module
Tests: dashboard figures, driver breakdown, daily series, periods, dashboard endpoints
"""
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.core.cache import cache
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from deliverydesk.core.permissions import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from deliverydesk.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from deliverydesk.orders.models import Order
from deliverydesk.orders.pricing import company_delivery_price
from deliverydesk.reports import stats


def order_row(state, total, province='Phnom Penh', delivery='1.50', company='1.20', driver_id=None,
              order_date=date(2024, 3, 10)):
    return {
        'state': state, 'province': province, 'total_price': Decimal(total),
        'delivery_price': Decimal(delivery), 'company_delivery_price': Decimal(company),
        'driver_id': driver_id, 'order_date': order_date,
    }


class SummaryTests(SimpleTestCase):

    def setUp(self):
        self.orders = [
            order_row('COMPLETED', '10.00', driver_id=1),
            order_row('COMPLETED', '20.00', province='Kandal', driver_id=1),
            order_row('RETURNED', '5.00', driver_id=2),
            order_row('PLACED', '7.00'),
            order_row('DELIVERING', '3.00', province='Takeo', driver_id=2),
        ]

    def test_counts(self):
        summary = stats.summarize_orders(self.orders)
        self.assertEqual(summary['total_orders'], 5)
        self.assertEqual(summary['completed_orders'], 2)
        self.assertEqual(summary['returned_orders'], 1)
        self.assertEqual(summary['cancelled_orders'], 0)

    def test_revenue_excludes_returns(self):
        summary = stats.summarize_orders(self.orders)
        self.assertEqual(summary['total_revenue'], Decimal('40.00'))
        self.assertEqual(summary['total_revenue_with_returns'], Decimal('45.00'))
        self.assertEqual(summary['total_revenue_pp'], Decimal('17.00'))
        self.assertEqual(summary['total_revenue_province'], Decimal('23.00'))
        self.assertEqual(summary['total_revenue_completed'], Decimal('30.00'))
        self.assertEqual(summary['total_revenue_pp_completed'], Decimal('10.00'))

    def test_phnom_penh_match_ignores_case_and_padding(self):
        orders = [
            order_row('COMPLETED', '10.00', province='phnom penh '),
            order_row('COMPLETED', '5.00', province='  PHNOM PENH'),
            order_row('COMPLETED', '2.00', province='Kampot'),
        ]
        summary = stats.summarize_orders(orders, 'Phnom Penh')
        self.assertEqual(summary['total_revenue_pp'], Decimal('15.00'))
        self.assertEqual(summary['total_revenue_province'], Decimal('2.00'))
        self.assertEqual(summary['total_revenue_pp_completed'], Decimal('15.00'))
        self.assertEqual(company_delivery_price('phnom penh ', 30), Decimal('2.00'))

    def test_delivery_profit(self):
        summary = stats.summarize_orders(self.orders)
        self.assertEqual(summary['customer_delivery'], Decimal('7.50'))
        self.assertEqual(summary['company_delivery'], Decimal('6.00'))
        self.assertEqual(summary['profit_delivery'], Decimal('1.50'))
        self.assertEqual(summary['profit_delivery_completed'], Decimal('0.60'))

    def test_driver_breakdown(self):
        drivers, unassigned = stats.driver_breakdown(self.orders, [{'id': 1, 'name': 'Dara'}, {'id': 3, 'name': 'Idle'}])
        dara = drivers[0]
        self.assertEqual((dara['total'], dara['completed']), (2, 2))
        self.assertEqual(dara['total_amount'], Decimal('30.00'))
        self.assertEqual(dara['delivery'], Decimal('3.00'))
        self.assertEqual(drivers[1]['total'], 0)
        # driver 2 is not active so their orders count as unassigned
        self.assertEqual(unassigned['total'], 3)
        self.assertEqual(unassigned['returned'], 1)
        self.assertEqual(unassigned['delivering'], 1)
        self.assertEqual(unassigned['total_amount'], Decimal('0.00'))

    def test_daily_series_zero_fills(self):
        series = stats.daily_series(self.orders, date(2024, 3, 9), date(2024, 3, 11))
        self.assertEqual([p['date'] for p in series], ['2024-03-09', '2024-03-10', '2024-03-11'])
        self.assertEqual([p['orders'] for p in series], [0, 5, 0])
        self.assertEqual(series[1]['revenue'], Decimal('40.00'))

    def test_top_products(self):
        items = [
            {'product_id': 1, 'product_name': 'Rice', 'quantity': 2, 'price': '5.00'},
            {'product_id': 2, 'product_name': 'Oil', 'quantity': 5, 'price': '3.00'},
            {'product_id': 1, 'product_name': 'Rice', 'quantity': 4, 'price': '5.00'},
        ]
        ranked = stats.top_products(items)
        self.assertEqual([row['name'] for row in ranked], ['Rice', 'Oil'])
        self.assertEqual(ranked[0]['quantity'], 6)
        self.assertEqual(ranked[0]['revenue'], Decimal('30.00'))
        self.assertEqual(len(stats.top_products(items, limit=1)), 1)

    def test_status_distribution_drops_zero(self):
        slices = stats.status_distribution({'PLACED': 2, 'COMPLETED': 0, 'RETURNED': 1})
        self.assertEqual([s['name'] for s in slices], ['Placed', 'Returned'])
        self.assertEqual(slices[0]['color'], '#3B82F6')


class PeriodRangeTests(SimpleTestCase):

    def test_periods(self):
        today = date(2024, 2, 15)
        self.assertEqual(stats.period_range('current_day', today), (today, today))
        self.assertEqual(stats.period_range('current_month', today), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(stats.period_range('last_month', today), (date(2024, 1, 1), date(2024, 1, 31)))
        self.assertEqual(stats.period_range('last_3_months', today), (date(2023, 12, 1), date(2024, 2, 29)))
        self.assertEqual(stats.period_range('last_6_months', today), (date(2023, 9, 1), date(2024, 2, 29)))
        self.assertEqual(stats.period_range('current_year', today), (date(2024, 1, 1), date(2024, 12, 31)))

    def test_last_month_in_january(self):
        self.assertEqual(stats.period_range('last_month', date(2024, 1, 5)), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_unknown_period_is_current_day(self):
        today = date(2024, 2, 15)
        self.assertEqual(stats.period_range('fortnight', today), (today, today))


class DashboardAPITests(TestCase):
    """Dashboard endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(role=ROLE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

        self.driver = TestDataFactory.create_driver(name='Dara')
        self.completed = TestDataFactory.create_order(state=Order.STATE_COMPLETED, driver=self.driver,
                                                      total_price=Decimal('21.50'))
        TestDataFactory.create_order(state=Order.STATE_RETURNED, total_price=Decimal('10.00'))
        product = TestDataFactory.create_product(name='Rice')
        TestDataFactory.create_order_item(self.completed, product=product, quantity=3)

    def test_stats_for_today(self):
        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total_orders'], 2)
        self.assertEqual(response.data['stats']['total_revenue'], Decimal('21.50'))
        self.assertEqual(response.data['drivers'][0]['name'], 'Dara')
        self.assertEqual(response.data['drivers'][0]['completed'], 1)
        self.assertEqual(response.data['unassigned']['returned'], 1)
        self.assertEqual(len(response.data['daily']), 1)

    def test_stats_cache_refreshes_after_order_change(self):
        self.client.get('/api/v1/dashboard/stats/')
        TestDataFactory.create_order()
        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.data['stats']['total_orders'], 3)

    def test_bad_dates(self):
        response = self.client.get('/api/v1/dashboard/stats/', {'date_from': '15/02/2024'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/dashboard/stats/', {'date_from': '2024-02-10', 'date_to': '2024-02-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_past_range_is_empty(self):
        response = self.client.get('/api/v1/dashboard/stats/', {'date_from': '2020-01-01', 'date_to': '2020-01-03'})
        self.assertEqual(response.data['stats']['total_orders'], 0)
        self.assertEqual(len(response.data['daily']), 3)

    def test_order_after_local_midnight_counts_on_that_day(self):
        """Days are bucketed in the business timezone, not UTC"""
        TestDataFactory.create_order(order_at=datetime(2025, 3, 10, 1, 0, tzinfo=ZoneInfo('Asia/Phnom_Penh')))
        response = self.client.get('/api/v1/dashboard/stats/', {'date_from': '2025-03-10', 'date_to': '2025-03-10'})
        self.assertEqual(response.data['stats']['total_orders'], 1)
        self.assertEqual(response.data['daily'][0]['orders'], 1)

        response = self.client.get('/api/v1/dashboard/stats/', {'date_from': '2025-03-09', 'date_to': '2025-03-09'})
        self.assertEqual(response.data['stats']['total_orders'], 0)

    def test_charts(self):
        response = self.client.get('/api/v1/dashboard/charts/revenue/', {'period': 'current_month'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], 'current_month')
        self.assertEqual(response.data['total'], Decimal('21.50'))

        response = self.client.get('/api/v1/dashboard/charts/orders/')
        self.assertEqual(response.data['period'], 'current_day')
        self.assertEqual(sum(p['orders'] for p in response.data['series']), 2)

    def test_sales_report(self):
        response = self.client.get('/api/v1/dashboard/sales-report/', {'period': 'current_year'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['top_products'][0]['name'], 'Rice')
        self.assertEqual(response.data['top_products'][0]['quantity'], 3)
        self.assertEqual({s['name'] for s in response.data['status_distribution']}, {'Completed', 'Returned'})

    def test_staff_without_dashboard_permission(self):
        staff = TestDataFactory.create_user(role=ROLE_STAFF)
        client = AuthenticatedAPIClient().authenticate_user(staff)
        response = client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_bypasses_permission_list(self):
        admin = TestDataFactory.create_user(role=ROLE_ADMIN, permissions=[])
        client = AuthenticatedAPIClient().authenticate_user(admin)
        self.assertEqual(client.get('/api/v1/dashboard/stats/').status_code, status.HTTP_200_OK)
