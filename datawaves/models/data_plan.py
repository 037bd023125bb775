from datetime import datetime

from datawaves.extensions import db


class DataPlan(db.Model):
    """
    A wholesale data bundle. The customer price is never stored; it is derived
    from ``base_price`` and the network's current markup whenever it is read.
    """

    __tablename__ = "data_plans"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(30), nullable=False, index=True)
    size = db.Column(db.String(20), nullable=False, doc="Bundle size in GB")
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self, customer_price=None):
        data = {
            "id": self.id,
            "provider": self.provider,
            "size": self.size,
            "base_price": str(self.base_price),
        }
        if customer_price is not None:
            data["customer_price"] = str(customer_price)
        return data

    def __repr__(self):
        return f"<DataPlan {self.id} {self.provider} {self.size}GB>"
