from datetime import datetime

from datawaves.extensions import db


class NetworkMarkup(db.Model):
    """Persisted copy of the per-network markup table so it survives restarts."""

    __tablename__ = "network_markups"

    network = db.Column(db.String(30), primary_key=True)
    markup = db.Column(db.Numeric(6, 2), nullable=False)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def as_mapping(cls):
        return {row.network: row.markup for row in cls.query.all()}

    @classmethod
    def upsert(cls, network, markup, updated_by=None):
        row = db.session.get(cls, network)
        if row is None:
            row = cls(network=network)
            db.session.add(row)
        row.markup = markup
        row.updated_by = updated_by
        db.session.commit()
        return row
