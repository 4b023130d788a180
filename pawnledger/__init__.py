"""PawnLedger: interest accrual and payment ledger for pledged-item loans."""

from pawnledger.database import DatabaseManager
from pawnledger.engine import LedgerEngine
from pawnledger.interest import compute_interest, interest_breakdown

__version__ = "0.1.0"

__all__ = ['DatabaseManager', 'LedgerEngine', 'compute_interest', 'interest_breakdown', '__version__']
