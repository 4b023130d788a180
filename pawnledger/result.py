"""Result pattern for the transport-facing side of PawnLedger.

The services raise typed exceptions; a calling layer that prefers return
values (an HTTP handler, a CLI) gets them folded into a Result carrying an
error category it can map to its own status codes.
"""
from dataclasses import dataclass
from typing import Optional, TypeVar, Generic

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """Represents the outcome of an operation.
    
    Attributes:
        success: Whether the operation succeeded.
        value: The return value on success, None on failure.
        error: Error message on failure, None on success.
        error_type: Category of error (one of the ErrorType constants).
        details: Structured details of the error, if any.
        
    Usage:
        result = engine.submit_payment(item_id, 2000, 10000, "2024-01-31")
        if result.success:
            print(f"Remaining: {result.value.remaining_amount}")
        elif result.error_type == ErrorType.NOT_FOUND:
            ...
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    details: Optional[dict] = None
    
    @classmethod
    def ok(cls, value: T = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)
    
    @classmethod
    def fail(cls, error: str, error_type: str = None, details: dict = None) -> 'Result[T]':
        """Create a failure result.
        
        Args:
            error: Error message describing what went wrong.
            error_type: Optional error category for programmatic handling.
            details: Optional structured error details.
            
        Returns:
            A Result with success=False and error details.
        """
        return cls(success=False, error=error, error_type=error_type, details=details or {})
    
    def __bool__(self) -> bool:
        return self.success
    
    def unwrap(self) -> T:
        """Get the value, raising an exception if the operation failed.
        
        Raises:
            ValueError: If the operation failed.
        """
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.value
    
    def unwrap_or(self, default: T) -> T:
        """Get the value or a default if the operation failed."""
        return self.value if self.success else default


class ErrorType:
    """Standard error type constants."""
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE = "INVALID_STATE"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    DATABASE = "DATABASE"
