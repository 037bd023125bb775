from enum import Enum


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SUCCESS = "success"
    FAILED = "failed"


class ConfirmationMethod(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


class PaymentOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


TERMINAL_STATUSES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})

# pending -> paid -> success | failed, pending -> failed
ALLOWED_TRANSITIONS = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.PAID, TransactionStatus.FAILED}),
    TransactionStatus.PAID: frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED}),
    TransactionStatus.SUCCESS: frozenset(),
    TransactionStatus.FAILED: frozenset(),
}


def can_transition(current, target) -> bool:
    return TransactionStatus(target) in ALLOWED_TRANSITIONS[TransactionStatus(current)]


def is_terminal(status) -> bool:
    return TransactionStatus(status) in TERMINAL_STATUSES
