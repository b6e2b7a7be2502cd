"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidLoanTerms(DomainException):
    """Loan terms cannot produce a projection or a ledger entry"""

    pass


class OverpaymentRejected(DomainException):
    """A capital reduction exceeds the outstanding balance"""

    def __init__(self, amount: int, balance: int):
        super().__init__(f"Payment of {amount} exceeds outstanding balance of {balance}")
        self.amount = amount
        self.balance = balance


class InsufficientTreasuryFunds(DomainException):
    """A withdrawal or disbursement exceeds the bank account balance"""

    def __init__(self, account_id: str, amount: int, balance: int):
        super().__init__(f"Account {account_id} holds {balance}, cannot release {amount}")
        self.account_id = account_id
        self.amount = amount
        self.balance = balance


class ChainIntegrityViolation(DomainException):
    """A transaction does not fit the client's ordered ledger chain"""

    pass


class ClientNotFound(DomainException):
    """Referenced client does not exist"""

    pass


class BankAccountNotFound(DomainException):
    """Referenced bank account does not exist"""

    pass


class TransactionNotFound(DomainException):
    """Referenced transaction does not exist"""

    pass
