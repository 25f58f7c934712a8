import uuid
from datetime import datetime

from ..extensions import db


def _new_id() -> str:
    return uuid.uuid4().hex


class Entity(db.Model):
    """A product or vendor profile built up section by section."""

    __tablename__ = "entities"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    kind = db.Column(db.String(64), nullable=False, index=True)

    attributes = db.Column(db.JSON, default=dict, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        data = dict(self.attributes or {})
        data["id"] = self.id
        return data

    def __repr__(self) -> str:
        return f"<Entity {self.kind} {self.id}>"
