"""Payment ledger service for PawnLedger.

This service owns the running ledger of each pledged item:
- Applying payments with a caller-declared interest/principal split
- Projecting interest accrued since the last payment
- Payment history with aggregates
- Standalone interest quotes ahead of a payment
"""
from datetime import datetime

from pawnledger.config import (
    INTEREST_DEVIATION_MIN,
    INTEREST_DEVIATION_RATIO,
    MONEY_EPSILON,
    SETTING_DEVIATION_MIN,
    SETTING_DEVIATION_RATIO,
)
from pawnledger.data_structures import (
    InterestStatus,
    ItemSnapshot,
    Payment,
    PaymentHistory,
    PaymentReceipt,
    PaymentTotals,
    Reconciliation,
    item_status,
)
from pawnledger.dates import format_datetime, parse_amount, parse_datetime, round_money
from pawnledger.exceptions import (
    ConcurrencyConflictError,
    DatabaseBusyError,
    InvalidInputError,
    ItemNotFoundError,
    ItemSettledError,
    PrincipalExceedsBalanceError,
)
from pawnledger.interest import interest_breakdown, quote_interest
from pawnledger.logging_setup import get_logger

log = get_logger(__name__)


class PaymentLedger:
    """Applies payments to items and reports their interest position.

    Interest is always projected on the item's ``remaining_amount``, the
    principal still outstanding, never on the original ``amount``.
    """

    def __init__(self, db_manager, clock=None):
        """Initialize PaymentLedger.

        Args:
            db_manager: DatabaseManager instance for data persistence.
            clock: Callable returning the current datetime (default: datetime.now).
        """
        self.db = db_manager
        self.clock = clock or datetime.now

    def _get_item(self, item_id):
        item = self.db.get_item(item_id)
        if not item:
            raise ItemNotFoundError(item_id)
        return item

    def _accrual_start(self, item):
        return parse_datetime(item.get('interest_paid_till') or item['created_at'], 'interest start date')

    def _deviation_tolerance(self, projected):
        ratio = float(self.db.get_setting(SETTING_DEVIATION_RATIO, INTEREST_DEVIATION_RATIO))
        minimum = float(self.db.get_setting(SETTING_DEVIATION_MIN, INTEREST_DEVIATION_MIN))
        return max(minimum, ratio * projected)

    def reconcile(self, item, interest_amount, payment_date):
        """Compare declared interest against the projection up to ``payment_date``.

        A large deviation is flagged, never rejected: settlements may be
        negotiated or rounded by the caller.
        """
        quote = interest_breakdown(
            item['remaining_amount'], item['percentage'], self._accrual_start(item), payment_date)
        deviation = interest_amount - quote.interest
        tolerance = self._deviation_tolerance(quote.interest)
        return Reconciliation(
            declared_interest=interest_amount,
            projected_interest=quote.interest,
            deviation=deviation,
            tolerance=tolerance,
            flagged=abs(deviation) > tolerance,
        ), quote

    def apply_payment(self, item_id, interest_amount, principal_amount, payment_date) -> PaymentReceipt:
        """Apply a payment with an explicit interest/principal split.

        Args:
            item_id: ID of the item being paid down.
            interest_amount: Portion of the payment settling interest.
            principal_amount: Portion of the payment reducing the principal.
            payment_date: Date of the payment; back- and forward-dating are allowed.

        Returns:
            PaymentReceipt with the post-payment ledger state.

        Raises:
            InvalidInputError: On malformed amounts or date, both amounts zero,
                or a principal larger than the outstanding principal.
            ItemNotFoundError: If the item does not exist.
            ItemSettledError: If nothing is left to pay down.
            ConcurrencyConflictError: If a competing write won the race.
        """
        interest_amount = round_money(parse_amount(interest_amount, 'interest_amount'))
        principal_amount = round_money(parse_amount(principal_amount, 'principal_amount'))
        if interest_amount == 0 and principal_amount == 0:
            raise InvalidInputError("Payment must include interest or principal", 'amount', 0)
        paid_at = parse_datetime(payment_date, 'payment_date')

        try:
            with self.db.transaction():
                item = self._get_item(item_id)
                remaining = float(item['remaining_amount'])
                if remaining <= 0:
                    raise ItemSettledError(item_id, remaining)
                if principal_amount > remaining + MONEY_EPSILON:
                    raise PrincipalExceedsBalanceError(principal_amount, remaining, item_id)
                # Within a cent of the balance counts as paying it off
                principal_amount = min(principal_amount, remaining)
                amount_paid = round_money(interest_amount + principal_amount)

                reconciliation, quote = self.reconcile(item, interest_amount, paid_at)

                watermark = paid_at
                if item.get('interest_paid_till'):
                    watermark = max(watermark, parse_datetime(item['interest_paid_till'], 'interest_paid_till'))

                updated = self.db.apply_item_payment(
                    item_id, item['version'], principal_amount, amount_paid, format_datetime(watermark))
                if not updated:
                    raise ConcurrencyConflictError(item_id)

                payment_id = self.db.add_payment(
                    item_id, amount_paid, interest_amount, principal_amount, format_datetime(paid_at))
                self.db.add_interest_history(
                    item_id, payment_id, format_datetime(quote.from_date), format_datetime(quote.to_date),
                    quote.principal, quote.interest, interest_amount, reconciliation.flagged)
                item = self._get_item(item_id)
        except (ConcurrencyConflictError, DatabaseBusyError) as e:
            log.warning("Payment on item %s not applied: %s", item_id, e)
            if isinstance(e, DatabaseBusyError):
                raise ConcurrencyConflictError(item_id, "database is busy")
            raise

        if reconciliation.flagged:
            log.warning(
                "Declared interest %.2f on item %s deviates from projected %d by %.2f (tolerance %.2f)",
                interest_amount, item_id, reconciliation.projected_interest,
                reconciliation.deviation, reconciliation.tolerance)

        remaining = float(item['remaining_amount'])
        log.info("Payment %s applied to item %s: interest=%.2f principal=%.2f remaining=%.2f",
                 payment_id, item_id, interest_amount, principal_amount, remaining)

        return PaymentReceipt(
            payment_id=payment_id,
            item_id=item_id,
            paid_at=paid_at,
            amount_paid=amount_paid,
            interest_paid=interest_amount,
            principal_paid=principal_amount,
            remaining_amount=remaining,
            total_paid=float(item['total_paid']),
            interest_paid_till=parse_datetime(item['interest_paid_till'], 'interest_paid_till'),
            status=item_status(remaining),
            reconciliation=reconciliation,
        )

    def get_current_interest_status(self, item_id) -> InterestStatus:
        """Project interest accrued since the watermark up to now. Read-only."""
        with self.db.snapshot():
            item = self._get_item(item_id)
            last = self.db.get_last_payment(item_id)

        quote = interest_breakdown(
            item['remaining_amount'], item['percentage'], self._accrual_start(item), self.clock())
        log.debug("Interest status for item %s: %d days, %d accrued", item_id, quote.days, quote.interest)
        return InterestStatus(
            item_id=item_id,
            principal=quote.principal,
            monthly_rate=quote.monthly_rate,
            daily_rate=quote.daily_rate,
            from_date=quote.from_date,
            to_date=quote.to_date,
            days=quote.days,
            accrued_interest=quote.interest,
            status=item_status(quote.principal),
            last_payment=Payment.from_row(last) if last else None,
        )

    def get_payment_history(self, item_id) -> PaymentHistory:
        """Payments in chronological order with totals and the item's current state."""
        with self.db.snapshot():
            item = self._get_item(item_id)
            df = self.db.get_payments(item_id)

        totals = PaymentTotals()
        if not df.empty:
            totals = PaymentTotals(
                total_amount_paid=float(df['amount_paid'].sum()),
                total_interest_paid=float(df['interest_paid'].sum()),
                total_principal_paid=float(df['principal_paid'].sum()),
            )

        return PaymentHistory(
            item_id=item_id,
            item=ItemSnapshot.from_row(item),
            totals=totals,
            history=[Payment.from_row(row) for row in df.to_dict('records')],
        )

    def calculate_standalone_interest(self, amount, from_date, to_date, monthly_rate_percent):
        """Quote interest on a caller-supplied principal without touching any item."""
        return quote_interest(amount, from_date, to_date, monthly_rate_percent)
