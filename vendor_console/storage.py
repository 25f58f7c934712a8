"""Default collaborators: entities in the app database, uploads on local disk."""
import logging
import os
import uuid
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from .errors import PersistenceError, UploadError
from .extensions import db
from .models import Entity

logger = logging.getLogger(__name__)


class SqlEntityResource:
    def __init__(self, kind: str):
        self.kind = kind

    def _get(self, entity_id: str) -> Entity:
        entity = db.session.get(Entity, str(entity_id))
        if entity is None or entity.kind != self.kind:
            raise PersistenceError(f"No {self.kind} with id {entity_id}")
        return entity

    def create_entity(self, payload: Dict[str, Any]) -> str:
        entity = Entity(kind=self.kind, attributes=dict(payload))
        try:
            db.session.add(entity)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Creating %s failed", self.kind)
            raise PersistenceError(f"Could not create {self.kind}: {e}") from e
        return entity.id

    def update_entity(self, entity_id: str, payload: Dict[str, Any]) -> None:
        entity = self._get(entity_id)
        # JSON columns only notice reassignment
        merged = dict(entity.attributes or {})
        merged.update(payload)
        entity.attributes = merged
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Updating %s %s failed", self.kind, entity_id)
            raise PersistenceError(f"Could not update {self.kind} {entity_id}: {e}") from e

    def fetch_entity(self, entity_id: str) -> Dict[str, Any]:
        return self._get(entity_id).to_dict()


class LocalUploadStore:
    def __init__(self, folder: str, url_prefix: str = "/uploads"):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")

    def upload_file(self, handle, label: str) -> str:
        """Write a ``NewFile`` under ``<folder>/<label>/`` and return its public URL."""
        subdir = secure_filename(label.lower()) or "misc"
        name = f"{uuid.uuid4().hex}-{secure_filename(handle.filename) or 'upload'}"
        target_dir = os.path.join(self.folder, subdir)
        try:
            os.makedirs(target_dir, exist_ok=True)
            with open(os.path.join(target_dir, name), "wb") as f:
                f.write(handle.data)
        except OSError as e:
            raise UploadError(f"Could not store {handle.filename}: {e}") from e
        logger.info("Stored upload %s/%s (%d bytes)", subdir, name, len(handle.data))
        return f"{self.url_prefix}/{subdir}/{name}"
