from datetime import datetime

from datawaves.extensions import db
from datawaves.purchases.state_machine import ConfirmationMethod, TransactionStatus


class Transaction(db.Model):
    """
    A data bundle purchase. Created ``pending`` when the payment session is
    initialized and never deleted; ``status`` changes only through the
    conditional updates in ``datawaves.purchases.repository``.
    """

    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("data_plans.id"), nullable=False)
    network = db.Column(db.String(30), nullable=False)
    phone_number = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True)
    payment_reference = db.Column(db.String(120), unique=True, nullable=False, index=True)
    confirmation_method = db.Column(db.String(10), nullable=False, default=ConfirmationMethod.BOTH.value)
    confirmation_contact = db.Column(db.String(120), nullable=True)
    aggregator_response = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = db.relationship("DataPlan", lazy="joined")

    __table_args__ = (
        db.Index("idx_transaction_user_created", "user_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.payment_reference,
            "user_id": self.user_id,
            "plan_id": self.plan_id,
            "network": self.network,
            "phone_number": self.phone_number,
            "amount": str(self.amount),
            "status": self.status,
            "confirmation_method": self.confirmation_method,
            "confirmation_contact": self.confirmation_contact,
            "aggregator_response": self.aggregator_response,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Transaction {self.payment_reference} {self.status}>"
