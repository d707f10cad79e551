class PaymentReconciliationError(Exception):
    """Base error for payment events that cannot be applied to the ledger.

    The webhook ingest acknowledges these (status ``ignored``) instead of
    failing the delivery, because a retry would never succeed.
    """


class MalformedReferenceError(PaymentReconciliationError, ValueError):
    pass


class UnknownCatalogItemError(PaymentReconciliationError):
    pass


class UnknownEntityError(PaymentReconciliationError):
    pass


class ConcurrentReconciliationError(RuntimeError):
    """Another delivery changed the same row mid-transaction; the delivery must be retried."""
