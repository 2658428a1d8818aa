"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ComplianceError:

    ComplianceError (base)
    |
    +-- ConfigurationError
    |   +-- MissingPreferenceError
    |   +-- InvalidPreferenceError
    |
    +-- DataError
    |   +-- MissingCreatedFromError
    |   +-- UnexpectedRecordTypeError
    |   +-- InvalidCustomerIdError
    |   +-- CustomerNotFoundError
    |   +-- OrderNotFoundError
    |
    +-- OrderRejectedError
    |   +-- AllLinesBlockedError
    |
    +-- RemoteServiceError
    |   +-- TaxServiceError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError
            +-- CertificateConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | MISSING_PREFERENCE          | Required preference not configured
                | INVALID_PREFERENCE          | Preference value fails validation
----------------|-----------------------------|-----------------------------------------
Data            | MISSING_CREATED_FROM        | Transaction has no source transaction
                | UNEXPECTED_RECORD_TYPE      | Source transaction has the wrong type
                | INVALID_CUSTOMER_ID         | Customer reference is not an id
                | CUSTOMER_NOT_FOUND          | Customer id doesn't exist
                | ORDER_NOT_FOUND             | Sales order id doesn't exist
----------------|-----------------------------|-----------------------------------------
Order           | ALL_LINES_BLOCKED           | Every line removed by hard restrictions
----------------|-----------------------------|-----------------------------------------
Remote          | TAX_SERVICE_ERROR           | Tax-area service returned non-200
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Concurrent modification detected
                | CERTIFICATE_CONFLICT        | Certificate debited by another order

===============================================================================
HANDLING PATTERNS
===============================================================================

Configuration and data errors are caught at the service boundary, logged,
and the affected section of logic is skipped.  Remote errors are logged and
downgrade to "address could not be validated".  Only AllLinesBlockedError
and CertificateConflictError propagate to the caller:

    try:
        evaluator.before_submit(order, event=SubmitEvent.CREATE)
    except AllLinesBlockedError as e:
        return {"error": e.code, "removed": e.removed_line_keys}
"""


class ComplianceError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_ERROR"


# Configuration-related exceptions


class ConfigurationError(ComplianceError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class MissingPreferenceError(ConfigurationError):
    """A required preference has no value."""

    code: str = "MISSING_PREFERENCE"

    def __init__(self, preference: str):
        self.preference = preference
        super().__init__(f"Missing required preference: {preference}")


class InvalidPreferenceError(ConfigurationError):
    """A preference value failed validation."""

    code: str = "INVALID_PREFERENCE"

    def __init__(self, preference: str, value: object, reason: str):
        self.preference = preference
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid preference {preference}={value!r}: {reason}")


# Data-related exceptions


class DataError(ComplianceError):
    """Base exception for unexpected or missing record data."""

    code: str = "DATA_ERROR"


class MissingCreatedFromError(DataError):
    """Transaction is missing its created-from reference."""

    code: str = "MISSING_CREATED_FROM"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} has no created-from transaction"
        )


class UnexpectedRecordTypeError(DataError):
    """Source transaction is not of the expected record type."""

    code: str = "UNEXPECTED_RECORD_TYPE"

    def __init__(self, transaction_id: str, expected: str, actual: str | None):
        self.transaction_id = transaction_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Transaction {transaction_id} is {actual!r}, expected {expected!r}"
        )


class InvalidCustomerIdError(DataError):
    """Customer reference is not a usable customer id."""

    code: str = "INVALID_CUSTOMER_ID"

    def __init__(self, customer_id: object):
        self.customer_id = customer_id
        super().__init__(
            f"Remaining credit requires a customer ID value: {customer_id!r}"
        )


class CustomerNotFoundError(DataError):
    """Customer with given ID was not found."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class OrderNotFoundError(DataError):
    """Sales order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Sales order not found: {order_id}")


# Order-level fatal exceptions


class OrderRejectedError(ComplianceError):
    """Base exception for orders that cannot be saved."""

    code: str = "ORDER_REJECTED"


class AllLinesBlockedError(OrderRejectedError):
    """
    Every line on the order is blocked by a hard restriction.

    The order cannot be saved with no valid lines; this is the one
    user-visible failure of an evaluation.
    """

    code: str = "ALL_LINES_BLOCKED"

    def __init__(self, removed_line_keys: tuple[str, ...]):
        self.removed_line_keys = removed_line_keys
        super().__init__("Order Invalid due to Sku Restrictions")


# Remote-service exceptions


class RemoteServiceError(ComplianceError):
    """Base exception for failed calls to remote services."""

    code: str = "REMOTE_SERVICE_ERROR"


class TaxServiceError(RemoteServiceError):
    """Tax-area validation service returned an error response."""

    code: str = "TAX_SERVICE_ERROR"

    def __init__(self, url: str, status_code: int | None):
        self.url = url
        self.status_code = status_code
        super().__init__(
            f"Tax-area service at {url} responded with status {status_code}"
        )


# Concurrency-related exceptions


class ConcurrencyError(ComplianceError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class CertificateConflictError(OptimisticLockError):
    """
    An export certificate changed between read and debit.

    Raised when the compare-and-swap update of a certificate's remaining
    quantity/value matches no row.  The surrounding transaction must be
    rolled back; nothing is debited.
    """

    code: str = "CERTIFICATE_CONFLICT"

    def __init__(self, certificate_id: str, expected_version: int):
        self.expected_version = expected_version
        super().__init__("export_certificate", certificate_id)
