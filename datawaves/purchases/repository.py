"""
Persistence used by the purchase pipeline.

Status changes are conditional updates: a row only moves when it is still in
the expected prior status, so a concurrent writer that loses the race sees
``False`` instead of overwriting the winner.
"""

import logging
from typing import List, Optional

from sqlalchemy import update

from datawaves.errors import InvalidStateTransition
from datawaves.extensions import db
from datawaves.models import DataPlan, Transaction, User
from datawaves.purchases.state_machine import TransactionStatus, can_transition

logger = logging.getLogger(__name__)


class PurchaseRepository:
    def find_user_by_id(self, user_id) -> Optional[User]:
        return db.session.get(User, user_id)

    def find_plan_by_id(self, plan_id) -> Optional[DataPlan]:
        return db.session.get(DataPlan, plan_id)

    def create_transaction(self, data: dict) -> int:
        transaction = Transaction(status=TransactionStatus.PENDING.value, **data)
        db.session.add(transaction)
        db.session.commit()
        logger.info(
            "Transaction created",
            extra={"reference": transaction.payment_reference, "status": transaction.status},
        )
        return transaction.id

    def find_transaction_by_reference(self, reference) -> Optional[Transaction]:
        return Transaction.query.filter_by(payment_reference=reference).first()

    def list_transactions_for_user(self, user_id) -> List[Transaction]:
        return (
            Transaction.query
            .filter_by(user_id=user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .all()
        )

    def update_transaction_status(self, reference, expected, new) -> bool:
        expected = TransactionStatus(expected)
        new = TransactionStatus(new)
        if not can_transition(expected, new):
            raise InvalidStateTransition(f"Cannot move a transaction from {expected.value} to {new.value}")

        result = db.session.execute(
            update(Transaction)
            .where(
                Transaction.payment_reference == reference,
                Transaction.status == expected.value,
            )
            .values(status=new.value)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        applied = result.rowcount == 1
        if applied:
            logger.info(
                "Transaction status updated",
                extra={"reference": reference, "old_status": expected.value, "status": new.value},
            )
        else:
            logger.info(
                "Transaction status unchanged, no longer in expected state",
                extra={"reference": reference, "expected": expected.value, "target": new.value},
            )
        return applied

    def update_aggregator_response(self, reference, payload) -> None:
        db.session.execute(
            update(Transaction)
            .where(Transaction.payment_reference == reference)
            .values(aggregator_response=payload)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
