"""
Ledger error taxonomy shared by the service layer and the HTTP exception handlers
"""


class LedgerError(Exception):
    """Base class for errors raised by ledger operations"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Bad input: non-positive amount, over-payment, malformed import batch"""

    status_code = 400


class NotFoundError(LedgerError):
    """Referenced customer, transaction or payment does not exist"""

    status_code = 404


class PersistenceError(LedgerError):
    """The underlying store failed to read or write"""

    status_code = 503
