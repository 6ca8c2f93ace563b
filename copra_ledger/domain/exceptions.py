"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"


class ValidationError(DomainException):
    """Input is missing or malformed"""

    code = "validation_error"


class InvalidAmount(ValidationError):
    """Payment or loan amount is not a positive value, or overpays a loan"""

    pass


class NotFoundError(DomainException):
    """Referenced supplier, loan or transaction does not exist"""

    code = "not_found"


class InvalidStateTransition(DomainException):
    """Operation is not legal for the entity's current status"""

    code = "invalid_state_transition"


class InvalidLoanState(InvalidStateTransition):
    """Loan must be approved to accept payments"""

    pass


class InvalidTransition(InvalidStateTransition):
    """Transaction status does not permit the requested reversal"""

    pass


class NotEligible(DomainException):
    """Loan request exceeds the computed limit or supplier has no history"""

    code = "not_eligible"


class ConcurrencyConflict(DomainException):
    """Supplier lock or optimistic version check failed"""

    code = "concurrency_conflict"


class OrphanedPaymentReference(DomainException):
    """A recorded auto-debit points at a loan or payment that no longer resolves"""

    code = "orphaned_payment_reference"
