"""Business logic engine for PawnLedger.

This module provides the LedgerEngine class which acts as a facade over
the focused service classes in pawnledger/services/.

Service Classes:
    - PaymentLedger: Payment application and interest projection
    - ItemService: Customers and pledged items
    - InsightsService: Portfolio aggregates
"""
from pawnledger.config import DEFAULT_DAILY_WINDOW_DAYS
from pawnledger.exceptions import (
    ConcurrencyConflictError,
    DatabaseError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from pawnledger.logging_setup import get_logger
from pawnledger.reports import StatementExporter
from pawnledger.result import ErrorType, Result
from pawnledger.services import InsightsService, ItemService, PaymentLedger

log = get_logger(__name__)

_ERROR_TYPES = (
    (NotFoundError, ErrorType.NOT_FOUND),
    (InvalidInputError, ErrorType.INVALID_INPUT),
    (InvalidStateError, ErrorType.INVALID_STATE),
    (ConcurrencyConflictError, ErrorType.CONCURRENCY_CONFLICT),
    (DatabaseError, ErrorType.DATABASE),
)


class LedgerEngine:
    """Facade over the PawnLedger services.

    The storage handle is injected; services are created lazily on first use
    and share it.

    Attributes:
        db: DatabaseManager instance for data persistence.
        clock: Callable returning "now" for interest projections.
    """

    def __init__(self, db_manager, clock=None):
        self.db = db_manager
        self.clock = clock
        self._payment_ledger = None
        self._item_service = None
        self._insights_service = None
        self._exporter = None

    @property
    def payment_ledger(self):
        """Lazy-load PaymentLedger instance."""
        if self._payment_ledger is None:
            self._payment_ledger = PaymentLedger(self.db, clock=self.clock)
        return self._payment_ledger

    @property
    def item_service(self):
        """Lazy-load ItemService instance."""
        if self._item_service is None:
            self._item_service = ItemService(self.db)
        return self._item_service

    @property
    def insights_service(self):
        """Lazy-load InsightsService instance."""
        if self._insights_service is None:
            self._insights_service = InsightsService(self.db, clock=self.clock)
        return self._insights_service

    @property
    def exporter(self):
        """Lazy-load StatementExporter instance."""
        if self._exporter is None:
            self._exporter = StatementExporter(self.payment_ledger, self.db)
        return self._exporter

    # Ledger
    def apply_payment(self, item_id, interest_amount, principal_amount, payment_date):
        return self.payment_ledger.apply_payment(item_id, interest_amount, principal_amount, payment_date)

    def submit_payment(self, item_id, interest_amount, principal_amount, payment_date) -> Result:
        """Apply a payment, folding ledger errors into a Result.

        Returns:
            Result wrapping the PaymentReceipt, or the error with its ErrorType.
        """
        try:
            return Result.ok(self.apply_payment(item_id, interest_amount, principal_amount, payment_date))
        except (NotFoundError, InvalidInputError, InvalidStateError,
                ConcurrencyConflictError, DatabaseError) as e:
            error_type = next(code for cls, code in _ERROR_TYPES if isinstance(e, cls))
            log.info("Payment on item %s rejected (%s): %s", item_id, error_type, e.message)
            return Result.fail(e.message, error_type, e.details)

    def get_current_interest_status(self, item_id):
        return self.payment_ledger.get_current_interest_status(item_id)

    def get_payment_history(self, item_id):
        return self.payment_ledger.get_payment_history(item_id)

    def calculate_standalone_interest(self, amount, from_date, to_date, monthly_rate_percent):
        return self.payment_ledger.calculate_standalone_interest(amount, from_date, to_date, monthly_rate_percent)

    # Registry
    def create_customer(self, name, guardian_name, relation, address, aadhar_number="", mobile_number=""):
        return self.item_service.create_customer(name, guardian_name, relation, address, aadhar_number, mobile_number)

    def create_item(self, customer_id, name, amount, percentage, category="gold", item_weight=None,
                    description=None, created_at=None):
        return self.item_service.create_item(
            customer_id, name, amount, percentage, category, item_weight, description, created_at)

    def get_item(self, item_id):
        return self.item_service.get_item(item_id)

    def delete_item(self, item_id):
        return self.item_service.delete_item(item_id)

    # Insights & reports
    def get_insights(self):
        return self.insights_service.get_insights()

    def get_detailed_insights(self):
        return self.insights_service.get_detailed_insights()

    def get_daily_aggregates(self, days=DEFAULT_DAILY_WINDOW_DAYS, today=None):
        return self.insights_service.get_daily_aggregates(days, today)

    def export_payment_history(self, item_id, output_path):
        return self.exporter.export_payment_history(item_id, output_path)
