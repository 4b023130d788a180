"""Portfolio insights for PawnLedger.

Aggregates over all customers, items and payments for dashboards:
- Headline totals
- Daily paid/interest series
- Category breakdown, recent activity and monthly trends
"""
from datetime import datetime, timedelta
from dateutil.relativedelta import relativedelta
import pandas as pd

from pawnledger.config import (
    DATE_FORMAT_STORAGE,
    DEFAULT_DAILY_WINDOW_DAYS,
    MONTHLY_TRENDS_MONTHS,
    RECENT_ACTIVITY_LIMIT,
)
from pawnledger.dates import format_datetime, parse_datetime
from pawnledger.exceptions import InvalidInputError


class InsightsService:
    """Computes read-only portfolio aggregates."""

    def __init__(self, db_manager, clock=None):
        self.db = db_manager
        self.clock = clock or datetime.now

    def get_insights(self):
        """Headline totals across the whole book."""
        with self.db.snapshot():
            items = self.db.get_items()
            payments = self.db.get_all_payments()
            total_customers = self.db.count_customers()

        return {
            'total_customers': int(total_customers),
            'total_items': int(len(items)),
            'total_amount': float(items['amount'].sum()) if not items.empty else 0.0,
            'total_paid_amount': float(items['total_paid'].sum()) if not items.empty else 0.0,
            'total_remaining_amount': float(items['remaining_amount'].sum()) if not items.empty else 0.0,
            'total_interest': float(payments['interest_paid'].sum()) if not payments.empty else 0.0,
            'average_interest_rate': float(items['percentage'].mean()) if not items.empty else 0.0,
        }

    def get_daily_aggregates(self, days=DEFAULT_DAILY_WINDOW_DAYS, today=None):
        """Amount paid and interest paid per day for the last ``days`` days.

        Every day of the window is present, zero-filled.

        Returns:
            Dict with ``labels`` (YYYY-MM-DD) and ``datasets`` (total paid, interest paid).
        """
        if days < 1:
            raise InvalidInputError("days must be positive", 'days', days)
        end = parse_datetime(today, 'today') if today is not None else self.clock()
        start = datetime(end.year, end.month, end.day) - timedelta(days=days - 1)
        labels = [(start + timedelta(days=i)).strftime(DATE_FORMAT_STORAGE) for i in range(days)]

        payments = self.db.get_all_payments(start_date=format_datetime(start))
        daily = pd.DataFrame(index=labels, data={'amount_paid': 0.0, 'interest_paid': 0.0})
        if not payments.empty:
            payments['day'] = pd.to_datetime(payments['paid_at']).dt.strftime(DATE_FORMAT_STORAGE)
            sums = payments.groupby('day')[['amount_paid', 'interest_paid']].sum()
            # Forward-dated payments beyond the window get their own trailing labels
            daily = daily.add(sums, fill_value=0.0).sort_index()

        return {
            'labels': list(daily.index),
            'datasets': [
                {'label': 'Total Paid', 'data': [float(v) for v in daily['amount_paid']]},
                {'label': 'Interest Paid', 'data': [float(v) for v in daily['interest_paid']]},
            ],
        }

    def get_detailed_insights(self):
        """Headline totals plus category breakdown, recent activity and monthly trends."""
        insights = self.get_insights()
        items = self.db.get_items()
        payments = self.db.get_all_payments()

        categories = []
        if not items.empty:
            grouped = items.groupby('category').agg(
                total_amount=('amount', 'sum'),
                total_paid=('total_paid', 'sum'),
                remaining_amount=('remaining_amount', 'sum'),
                item_count=('id', 'count'),
                average_interest_rate=('percentage', 'mean'),
            )
            for category, row in grouped.iterrows():
                categories.append({
                    'category': category,
                    'total_amount': float(row['total_amount']),
                    'total_paid': float(row['total_paid']),
                    'remaining_amount': float(row['remaining_amount']),
                    'item_count': int(row['item_count']),
                    'average_interest_rate': float(row['average_interest_rate']),
                })

        recent = []
        if not payments.empty:
            latest = payments.sort_values(by=['paid_at', 'id'], ascending=False).head(RECENT_ACTIVITY_LIMIT)
            for _, row in latest.iterrows():
                recent.append({
                    'payment_id': int(row['id']),
                    'item_name': row['item_name'],
                    'customer_name': row['customer_name'],
                    'amount_paid': float(row['amount_paid']),
                    'interest_paid': float(row['interest_paid']),
                    'principal_paid': float(row['principal_paid']),
                    'paid_at': parse_datetime(row['paid_at'], 'paid_at'),
                })

        insights.update({
            'category_breakdown': categories,
            'recent_activity': recent,
            'monthly_trends': self._monthly_trends(payments),
        })
        return insights

    def _monthly_trends(self, payments):
        now = self.clock()
        since = datetime(now.year, now.month, 1) - relativedelta(months=MONTHLY_TRENDS_MONTHS - 1)
        months = [(since + relativedelta(months=i)).strftime("%Y-%m") for i in range(MONTHLY_TRENDS_MONTHS)]
        trends = pd.DataFrame(index=months, data={'amount_paid': 0.0, 'interest_paid': 0.0, 'principal_paid': 0.0})

        if not payments.empty:
            paid_at = pd.to_datetime(payments['paid_at'])
            window = payments[(paid_at >= since) & (paid_at < datetime(now.year, now.month, 1) + relativedelta(months=1))]
            if not window.empty:
                window = window.assign(month=pd.to_datetime(window['paid_at']).dt.strftime("%Y-%m"))
                sums = window.groupby('month')[['amount_paid', 'interest_paid', 'principal_paid']].sum()
                trends = trends.add(sums, fill_value=0.0)

        return [
            {
                'month': month,
                'amount_paid': float(row['amount_paid']),
                'interest_paid': float(row['interest_paid']),
                'principal_paid': float(row['principal_paid']),
            }
            for month, row in trends.iterrows()
        ]
