"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Requested ledger entity does not exist"""

    pass


class CustomerNotFoundError(NotFoundError):
    """Customer does not exist"""

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class DebtNotFoundError(NotFoundError):
    """Debt does not exist"""

    def __init__(self, debt_id: int):
        super().__init__(f"Debt {debt_id} not found")
        self.debt_id = debt_id


class PaymentNotFoundError(NotFoundError):
    """Payment does not exist"""

    def __init__(self, payment_id: int):
        super().__init__(f"Payment {payment_id} not found")
        self.payment_id = payment_id


class NoCreditError(DomainException):
    """Credit application attempted with a zero credit balance"""

    pass


class NoDebtError(DomainException):
    """Credit application attempted with no outstanding debt"""

    pass


class InvalidAmountError(DomainException):
    """Monetary input is outside the accepted range"""

    pass


class InvariantViolationError(DomainException):
    """Ledger bookkeeping does not add up; the surrounding transaction must abort"""

    pass


class NotificationError(DomainException):
    """Outbound customer notification could not be delivered"""

    pass
