"""Tests for the simple-interest calculator."""
import os
import sys
import unittest
from datetime import date, datetime, timedelta, timezone

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from pawnledger.exceptions import InvalidInputError
from pawnledger.interest import (
    compute_interest,
    elapsed_days,
    interest_breakdown,
    quote_interest,
    round_half_up,
)


class TestComputeInterest(unittest.TestCase):

    def test_thirty_days_at_two_percent(self):
        interest = compute_interest(100000, 2, "2024-01-01", "2024-01-31")
        self.assertEqual(interest, 2000)

    def test_daily_rate_uses_thirty_day_month(self):
        quote = interest_breakdown(100000, 2, date(2024, 1, 1), date(2024, 1, 31))
        self.assertEqual(quote.days, 30)
        self.assertAlmostEqual(quote.daily_rate, 2 / 30)
        self.assertEqual(quote.monthly_rate, 2)

    def test_partial_days_are_floored(self):
        start = datetime(2024, 1, 1, 9, 0)
        self.assertEqual(elapsed_days(start, start + timedelta(days=10, hours=23)), 10)
        self.assertEqual(compute_interest(30000, 3, start, start + timedelta(hours=23)), 0)

    def test_reversed_window_is_zero(self):
        self.assertEqual(compute_interest(100000, 2, "2024-02-01", "2024-01-01"), 0)

    def test_same_instant_is_zero(self):
        self.assertEqual(compute_interest(100000, 2, "2024-02-01", "2024-02-01"), 0)

    def test_rounds_to_whole_units(self):
        # 1000 * (1/30) * 1 / 100 = 0.333...
        self.assertEqual(compute_interest(1000, 1, "2024-01-01", "2024-01-02"), 0)
        # 50 * (30/30) * 1 / 100 = 0.5 rounds up
        self.assertEqual(compute_interest(50, 30, "2024-01-01", "2024-01-02"), 1)
        self.assertEqual(compute_interest(49, 30, "2024-01-01", "2024-01-02"), 0)

    def test_simple_not_compounding(self):
        one_month = compute_interest(50000, 3, "2024-01-01", "2024-01-31")
        two_months = compute_interest(50000, 3, "2024-01-01", "2024-03-01")
        self.assertEqual(one_month, 1500)
        self.assertEqual(two_months, 3000)

    def test_non_negative_over_forward_windows(self):
        start = datetime(2024, 1, 1)
        for days in (0, 1, 7, 45, 400):
            self.assertGreaterEqual(compute_interest(12345, 2.5, start, start + timedelta(days=days)), 0)

    def test_aware_datetimes_are_normalised(self):
        start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        end = datetime(2024, 1, 31, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        self.assertEqual(compute_interest(100000, 2, start, end), 2000)

    def test_missing_principal(self):
        with self.assertRaises(InvalidInputError):
            compute_interest(None, 2, "2024-01-01", "2024-01-31")

    def test_malformed_date(self):
        with self.assertRaises(InvalidInputError) as context:
            compute_interest(1000, 2, "not-a-date", "2024-01-31")
        self.assertEqual(context.exception.details['field'], 'from_date')

    def test_negative_principal(self):
        with self.assertRaises(InvalidInputError):
            compute_interest(-5, 2, "2024-01-01", "2024-01-31")

    def test_overflowing_interest_is_invalid_input(self):
        with self.assertRaises(InvalidInputError) as context:
            compute_interest(1e308, 2, "2024-01-01", "2024-03-01")
        self.assertEqual(context.exception.details['field'], 'principal')

    def test_partial_date_strings_are_rejected(self):
        for value in ("10", "March", "10/02"):
            with self.assertRaises(InvalidInputError):
                compute_interest(1000, 2, value, "2024-01-31")

    def test_iso_date_strings_are_accepted(self):
        self.assertEqual(compute_interest(100000, 2, "2024-01-01T00:00:00", "2024-01-31 00:00:00"), 2000)


class TestQuoteInterest(unittest.TestCase):

    def test_quote_matches_calculator(self):
        quote = quote_interest(100000, "2024-01-01", "2024-01-31", 2)
        self.assertEqual(quote.interest, 2000)
        self.assertEqual(quote.days, 30)
        self.assertEqual(quote.principal, 100000)

    def test_end_must_be_after_start(self):
        with self.assertRaises(InvalidInputError):
            quote_interest(100000, "2024-01-31", "2024-01-31", 2)
        with self.assertRaises(InvalidInputError):
            quote_interest(100000, "2024-01-31", "2024-01-01", 2)

    def test_rate_must_be_positive(self):
        with self.assertRaises(InvalidInputError):
            quote_interest(100000, "2024-01-01", "2024-01-31", 0)


class TestRoundHalfUp(unittest.TestCase):

    def test_halves(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(2.49), 2)
        self.assertEqual(round_half_up(-2.5), -3)


if __name__ == '__main__':
    unittest.main()
