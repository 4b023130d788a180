from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from pawnledger.config import STATUS_ACTIVE, STATUS_SETTLED
from pawnledger.dates import parse_datetime


def item_status(remaining_amount: float) -> str:
    return STATUS_ACTIVE if remaining_amount > 0 else STATUS_SETTLED


@dataclass
class Payment:
    """Immutable ledger entry for a single payment."""
    id: int
    item_id: int
    amount_paid: float
    interest_paid: float
    principal_paid: float
    paid_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Payment':
        return cls(
            id=int(row['id']),
            item_id=int(row['item_id']),
            amount_paid=float(row['amount_paid']),
            interest_paid=float(row['interest_paid']),
            principal_paid=float(row['principal_paid']),
            paid_at=parse_datetime(row['paid_at'], 'paid_at'),
        )


@dataclass
class InterestQuote:
    """Interest over a window together with the figures it was derived from."""
    principal: float
    monthly_rate: float
    daily_rate: float
    days: int
    interest: int
    from_date: datetime
    to_date: datetime


@dataclass
class Reconciliation:
    """Declared interest compared with the calculator's projection."""
    declared_interest: float
    projected_interest: int
    deviation: float
    tolerance: float
    flagged: bool


@dataclass
class PaymentReceipt:
    payment_id: int
    item_id: int
    paid_at: datetime
    amount_paid: float
    interest_paid: float
    principal_paid: float
    remaining_amount: float
    total_paid: float
    interest_paid_till: datetime
    status: str
    reconciliation: Reconciliation


@dataclass
class InterestStatus:
    item_id: int
    principal: float
    monthly_rate: float
    daily_rate: float
    from_date: datetime
    to_date: datetime
    days: int
    accrued_interest: int
    status: str
    last_payment: Optional[Payment] = None


@dataclass
class PaymentTotals:
    total_amount_paid: float = 0.0
    total_interest_paid: float = 0.0
    total_principal_paid: float = 0.0


@dataclass
class ItemSnapshot:
    """Current ledger state of an item."""
    item_id: int
    amount: float
    remaining_amount: float
    total_paid: float
    percentage: float
    interest_paid_till: Optional[datetime]
    created_at: datetime
    status: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ItemSnapshot':
        till = row.get('interest_paid_till')
        return cls(
            item_id=int(row['id']),
            amount=float(row['amount']),
            remaining_amount=float(row['remaining_amount']),
            total_paid=float(row['total_paid']),
            percentage=float(row['percentage']),
            interest_paid_till=parse_datetime(till, 'interest_paid_till') if till else None,
            created_at=parse_datetime(row['created_at'], 'created_at'),
            status=item_status(float(row['remaining_amount'])),
        )


@dataclass
class PaymentHistory:
    item_id: int
    item: ItemSnapshot
    totals: PaymentTotals = field(default_factory=PaymentTotals)
    history: List[Payment] = field(default_factory=list)
