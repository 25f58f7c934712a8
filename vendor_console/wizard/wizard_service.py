import logging
import threading
import time
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import abort
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from vendor_console.errors import UnknownFieldError
from vendor_console.storage import LocalUploadStore, SqlEntityResource
from vendor_console.wizard.state_machine import SaveResult, WizardStateMachine
from vendor_console.wizard.values import NewFile, dump_client_value
from vendor_console.wizard.wizard_definitions import WIZARDS

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Live wizard sessions of this process, keyed by session id.

    A session idle for longer than ``ttl`` seconds is dropped when it is next
    looked up. Adding a session also evicts expired and finished wizards and,
    past ``max_sessions``, the least recently used ones. Evicted sessions are
    abandoned so a save still running for them is discarded.
    """

    def __init__(self, ttl: float = 2 * 60 * 60, max_sessions: int = 1000, clock=time.monotonic):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl = ttl
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: "OrderedDict[str, Tuple[WizardStateMachine, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, machine: WizardStateMachine) -> str:
        sid = uuid.uuid4().hex
        with self._lock:
            evicted = self._evict(room_for=1)
            self._sessions[sid] = (machine, self._clock())
        for old_sid, old in evicted:
            old.abandon()
            logger.info("Evicted wizard session %s", old_sid)
        return sid

    def _evict(self, room_for: int = 0) -> List[Tuple[str, WizardStateMachine]]:
        now = self._clock()
        stale = [
            sid for sid, (machine, last_seen) in self._sessions.items()
            if now - last_seen > self.ttl or machine.wizard_completed
        ]
        evicted = [(sid, self._sessions.pop(sid)[0]) for sid in stale]
        while self._sessions and len(self._sessions) + room_for > self.max_sessions:
            sid, (machine, _) = self._sessions.popitem(last=False)
            evicted.append((sid, machine))
        return evicted

    def get(self, sid: str) -> Optional[WizardStateMachine]:
        with self._lock:
            entry = self._sessions.get(sid)
            if entry is None:
                return None
            machine, last_seen = entry
            now = self._clock()
            expired = now - last_seen > self.ttl
            if expired:
                del self._sessions[sid]
            else:
                self._sessions[sid] = (machine, now)
                self._sessions.move_to_end(sid)
        if expired:
            machine.abandon()
            logger.info("Wizard session %s expired", sid)
            return None
        return machine

    def pop(self, sid: str) -> Optional[WizardStateMachine]:
        with self._lock:
            entry = self._sessions.pop(sid, None)
        return entry[0] if entry else None

    def __len__(self):
        with self._lock:
            return len(self._sessions)


class WizardSessionService:
    def __init__(self, registry: SessionRegistry, config: Mapping[str, Any]):
        self.registry = registry
        self.config = config

    def _machine_for(self, wizard_name: str) -> WizardStateMachine:
        definition = WIZARDS.get(wizard_name)
        if definition is None:
            abort(404, description=f"Unknown wizard: {wizard_name}")
        return WizardStateMachine(
            definition,
            resource=SqlEntityResource(definition.entity_kind),
            uploader=LocalUploadStore(self.config["UPLOAD_FOLDER"], self.config["UPLOAD_URL_PREFIX"]),
            max_upload_workers=self.config["MAX_UPLOAD_WORKERS"],
        )

    def create(self, wizard_name: str, entity_id: Optional[str] = None) -> Tuple[str, WizardStateMachine]:
        """Start a session; with ``entity_id`` the stored entity is loaded for editing.

        Raises PersistenceError when that entity cannot be fetched.
        """
        machine = self._machine_for(wizard_name)
        if entity_id is not None:
            entity = machine.resource.fetch_entity(entity_id)
            machine.hydrate_from_entity(entity)
        sid = self.registry.add(machine)
        logger.info("Started %s session %s (entity=%s)", wizard_name, sid, entity_id)
        return sid, machine

    def get(self, sid: str) -> WizardStateMachine:
        machine = self.registry.get(sid)
        if machine is None:
            abort(404, description="Wizard session not found")
        return machine

    def set_values(self, machine: WizardStateMachine, values: Mapping[str, Any]) -> None:
        normalizer = machine.definition.normalizer
        parsed = {}
        for name, raw in values.items():
            if name not in normalizer:
                raise UnknownFieldError(name)
            parsed[name] = normalizer.parse_input(name, raw)
        for name, value in parsed.items():
            machine.set_field_value(name, value)

    def attach_file(self, machine: WizardStateMachine, field_name: str, storage: FileStorage) -> NewFile:
        normalizer = machine.definition.normalizer
        if field_name not in normalizer:
            raise UnknownFieldError(field_name)
        if not normalizer.is_file_field(field_name):
            raise ValueError(f"{field_name} is not a file field")
        handle = NewFile(
            filename=secure_filename(storage.filename or "") or "upload",
            data=storage.read(),
            content_type=storage.mimetype,
        )
        machine.set_field_value(field_name, handle)
        return handle

    def save(self, machine: WizardStateMachine) -> SaveResult:
        return machine.save_current_section()

    def discard(self, sid: str) -> None:
        machine = self.registry.pop(sid)
        if machine is None:
            abort(404, description="Wizard session not found")
        machine.abandon()
        logger.info("Discarded wizard session %s", sid)

    def state(self, sid: str, machine: WizardStateMachine) -> Dict[str, Any]:
        snap = machine.get_state()
        definition = machine.definition
        statuses = machine.section_statuses()
        return {
            "id": sid,
            "wizard": definition.name,
            "entity_id": snap.entity_id,
            "current_section_id": snap.current_section_id,
            "sections": [
                {"id": s.id, "display_name": s.display_name, "status": statuses[s.id]}
                for s in definition.sections
            ],
            "unlocked_section_ids": list(snap.unlocked_section_ids),
            "completed_section_ids": list(snap.completed_section_ids),
            "values": {name: dump_client_value(v) for name, v in snap.form_values.items()},
            "pending_files": sorted(snap.pending_files),
            "resolved_file_urls": dict(snap.resolved_file_urls),
            "wizard_completed": snap.wizard_completed,
            "progress": machine.progress(),
            "missing_required": machine.missing_required(),
        }
