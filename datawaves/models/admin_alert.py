# datawaves/models/admin_alert.py
from datetime import datetime

from datawaves.extensions import db


class AlertSeverity:
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AdminAlert(db.Model):
    __tablename__ = "admin_alerts"

    id = db.Column(db.Integer, primary_key=True)
    alert_type = db.Column(db.String(50), nullable=False)  # payment_failed, aggregator_failed, low_balance, ...
    severity = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=True, default=dict)
    related_reference = db.Column(db.String(120), nullable=True, index=True)

    is_resolved = db.Column(db.Boolean, default=False)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert alert to dictionary"""
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "related_reference": self.related_reference,
            "is_resolved": self.is_resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def record(cls, alert_type, title, message, data=None, severity=AlertSeverity.CRITICAL,
               related_reference=None):
        alert = cls(
            alert_type=alert_type,
            severity=severity,
            title=title,
            message=message,
            data=data or {},
            related_reference=related_reference,
        )
        db.session.add(alert)
        db.session.commit()
        return alert

    def resolve(self, admin_id):
        """Mark alert as resolved"""
        self.is_resolved = True
        self.resolved_at = datetime.utcnow()
        self.resolved_by = admin_id
        return self
