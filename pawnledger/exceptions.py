"""Custom exceptions for PawnLedger."""


class PawnLedgerError(Exception):
    """Base exception for all PawnLedger errors."""
    
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class DatabaseError(PawnLedgerError):
    """Raised when a database operation fails."""
    pass


class TransactionError(DatabaseError):
    """Raised when a database transaction fails to complete."""
    pass


class NotFoundError(PawnLedgerError):
    """Raised when a referenced record does not exist."""
    pass


class ItemNotFoundError(NotFoundError):
    """Raised when an item cannot be found."""
    
    def __init__(self, item_id=None):
        details = {}
        message = "Item not found"
        if item_id is not None:
            details['item_id'] = item_id
            message = f"Item {item_id} not found"
        super().__init__(message, details)


class CustomerNotFoundError(NotFoundError):
    """Raised when a customer cannot be found."""
    
    def __init__(self, customer_id=None):
        details = {}
        message = "Customer not found"
        if customer_id is not None:
            details['customer_id'] = customer_id
            message = f"Customer with ID {customer_id} not found"
        super().__init__(message, details)


class InvalidInputError(PawnLedgerError):
    """Raised when arguments are malformed or out of range."""
    
    def __init__(self, message: str, field: str = None, value=None):
        details = {}
        if field:
            details['field'] = field
            details['value'] = value
        super().__init__(message, details)


class PrincipalExceedsBalanceError(InvalidInputError):
    """Raised when a principal payment is larger than the outstanding principal."""
    
    def __init__(self, principal: float, remaining: float, item_id=None):
        PawnLedgerError.__init__(
            self,
            f"Principal payment {principal} exceeds remaining amount {remaining}",
            {'principal': principal, 'remaining': remaining, 'item_id': item_id},
        )


class InvalidStateError(PawnLedgerError):
    """Raised when the ledger state does not permit the operation."""
    pass


class ItemSettledError(InvalidStateError):
    """Raised when a payment is attempted on an item with nothing left to pay down."""
    
    def __init__(self, item_id, remaining: float = 0):
        details = {
            'item_id': item_id,
            'remaining': remaining
        }
        message = f"Item {item_id} is settled, nothing left to pay down"
        super().__init__(message, details)


class ConcurrencyConflictError(PawnLedgerError):
    """Raised when a competing write changed the item; retry the whole operation."""
    
    def __init__(self, item_id, reason: str = "item was modified concurrently"):
        details = {'item_id': item_id}
        super().__init__(f"Concurrency conflict on item {item_id}: {reason}", details)


class DatabaseBusyError(DatabaseError):
    """Raised when the database write lock could not be acquired in time."""
    pass
