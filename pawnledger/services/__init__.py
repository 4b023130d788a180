"""Services package for PawnLedger business logic.

Focused service classes over a shared DatabaseManager; LedgerEngine in
pawnledger.engine wires them together.
"""

from .payment_ledger import PaymentLedger
from .item_service import ItemService
from .insights_service import InsightsService

__all__ = ['PaymentLedger', 'ItemService', 'InsightsService']
