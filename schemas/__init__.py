from schemas.ledger import Payment, Transaction, TransactionStatus, CustomerRecord, Actor

__all__ = ["Payment", "Transaction", "TransactionStatus", "CustomerRecord", "Actor"]
