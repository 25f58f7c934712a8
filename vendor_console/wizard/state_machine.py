"""Section-by-section wizard driver.

One ``WizardStateMachine`` owns the state of one wizard session. Sections are
unlocked strictly in order: a section becomes reachable only after every
section before it has been saved (or the whole entity was loaded for editing).
Nothing in the state changes unless a save fully succeeds.
"""
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from vendor_console.errors import (
    LockedSectionError,
    PersistenceError,
    SaveInProgressError,
    SectionValidationError,
    SequencingError,
    SessionClosedError,
    UnknownFieldError,
    UploadError,
)
from vendor_console.wizard.collaborators import EntityResource, FileUploader
from vendor_console.wizard.normalizer import FieldKind
from vendor_console.wizard.payload import SubmissionPayloadBuilder
from vendor_console.wizard.schema import SectionSchemaRegistry, ValidationResult, WizardDefinition
from vendor_console.wizard.uploads import FileUploadCoordinator
from vendor_console.wizard.values import ExistingFile, NewFile, is_empty

logger = logging.getLogger(__name__)


class SectionStatus:
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    ACTIVE = "active"
    COMPLETED = "completed"

    ALL = [LOCKED, UNLOCKED, ACTIVE, COMPLETED]


class SaveStatus:
    SAVED = "saved"
    INVALID = "invalid"
    UPLOAD_FAILED = "upload_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    DISCARDED = "discarded"

    ALL = [SAVED, INVALID, UPLOAD_FAILED, PERSISTENCE_FAILED, DISCARDED]


@dataclass(frozen=True)
class SaveResult:
    status: str
    section_id: str
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None
    failed_fields: Tuple[str, ...] = ()
    entity_id: Optional[str] = None
    next_section_id: Optional[str] = None
    wizard_completed: bool = False

    @property
    def ok(self) -> bool:
        return self.status == SaveStatus.SAVED

    def raise_for_status(self) -> "SaveResult":
        """Raise the error matching a failed save; return self otherwise."""
        if self.status == SaveStatus.INVALID:
            raise SectionValidationError(self.section_id, self.validation)
        if self.status == SaveStatus.UPLOAD_FAILED:
            raise UploadError(self.error, failed_fields=self.failed_fields)
        if self.status == SaveStatus.PERSISTENCE_FAILED:
            raise PersistenceError(self.error)
        if self.status == SaveStatus.DISCARDED:
            raise SessionClosedError("This wizard session has been closed")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "section_id": self.section_id,
            "validation": self.validation.to_dict() if self.validation else None,
            "error": self.error,
            "failed_fields": list(self.failed_fields),
            "entity_id": self.entity_id,
            "next_section_id": self.next_section_id,
            "wizard_completed": self.wizard_completed,
        }


@dataclass(frozen=True)
class WizardSnapshot:
    entity_id: Optional[str]
    current_section_id: str
    unlocked_section_ids: Tuple[str, ...]
    completed_section_ids: Tuple[str, ...]
    form_values: Mapping[str, Any]
    pending_files: Mapping[str, NewFile]
    resolved_file_urls: Mapping[str, str]
    wizard_completed: bool


@dataclass
class WizardState:
    current_section_id: str
    entity_id: Optional[str] = None
    unlocked_section_ids: List[str] = field(default_factory=list)
    completed_section_ids: Set[str] = field(default_factory=set)
    form_values: Dict[str, Any] = field(default_factory=dict)
    pending_files: Dict[str, NewFile] = field(default_factory=dict)
    resolved_file_urls: Dict[str, str] = field(default_factory=dict)
    wizard_completed: bool = False


class WizardStateMachine:
    def __init__(
        self,
        definition: WizardDefinition,
        resource: EntityResource,
        uploader: FileUploader,
        registry: Optional[SectionSchemaRegistry] = None,
        coordinator: Optional[FileUploadCoordinator] = None,
        builder: Optional[SubmissionPayloadBuilder] = None,
        max_upload_workers: int = 4,
    ):
        self.definition = definition
        self.resource = resource
        self.registry = registry or SectionSchemaRegistry(definition)
        self.coordinator = coordinator or FileUploadCoordinator(uploader, max_workers=max_upload_workers)
        self.builder = builder or SubmissionPayloadBuilder(definition.normalizer)

        first = definition.first_section
        self._state = WizardState(current_section_id=first.id, unlocked_section_ids=[first.id])
        self._state.form_values.update(first.initial_values())
        self._state_lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._closed = False

    # -- reading -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def wizard_completed(self) -> bool:
        with self._state_lock:
            return self._state.wizard_completed

    def get_state(self) -> WizardSnapshot:
        with self._state_lock:
            s = self._state
            order = self.definition.section_ids
            return WizardSnapshot(
                entity_id=s.entity_id,
                current_section_id=s.current_section_id,
                unlocked_section_ids=tuple(i for i in order if i in s.unlocked_section_ids),
                completed_section_ids=tuple(i for i in order if i in s.completed_section_ids),
                form_values=MappingProxyType(dict(s.form_values)),
                pending_files=MappingProxyType(dict(s.pending_files)),
                resolved_file_urls=MappingProxyType(dict(s.resolved_file_urls)),
                wizard_completed=s.wizard_completed,
            )

    def section_statuses(self) -> Dict[str, str]:
        with self._state_lock:
            s = self._state
            statuses = {}
            for section_id in self.definition.section_ids:
                if section_id == s.current_section_id and not s.wizard_completed:
                    statuses[section_id] = SectionStatus.ACTIVE
                elif section_id in s.completed_section_ids:
                    statuses[section_id] = SectionStatus.COMPLETED
                elif section_id in s.unlocked_section_ids:
                    statuses[section_id] = SectionStatus.UNLOCKED
                else:
                    statuses[section_id] = SectionStatus.LOCKED
            return statuses

    def progress(self) -> Dict[str, int]:
        with self._state_lock:
            return {
                "completed": len(self._state.completed_section_ids),
                "total": len(self.definition.sections),
            }

    def missing_required(self) -> Dict[str, List[str]]:
        with self._state_lock:
            values = dict(self._state.form_values)
        return self.registry.missing_required(values)

    # -- editing -----------------------------------------------------------

    def _ensure_open(self):
        if self._closed:
            raise SessionClosedError("This wizard session has been closed")

    def set_field_value(self, name: str, value: Any):
        self._ensure_open()
        spec = self.definition.normalizer.spec(name)
        if spec is None:
            raise UnknownFieldError(name)

        with self._state_lock:
            s = self._state
            if spec.kind == FieldKind.FILE:
                if value is not None and not isinstance(value, (NewFile, ExistingFile)):
                    raise ValueError(f"{name} only accepts a file")
                if isinstance(value, ExistingFile) and value.url != s.resolved_file_urls.get(name):
                    raise ValueError(f"{name} can only keep a file uploaded or loaded in this session")
                s.pending_files.pop(name, None)
                if value is None:
                    s.resolved_file_urls.pop(name, None)
                elif isinstance(value, NewFile):
                    s.pending_files[name] = value
            s.form_values[name] = value

    def enter_section(self, section_id: str):
        self._ensure_open()
        section = self.definition.section(section_id)
        with self._state_lock:
            s = self._state
            if section_id not in s.unlocked_section_ids:
                raise LockedSectionError(section_id)
            s.current_section_id = section_id
            self._apply_defaults(section_id)

    def _apply_defaults(self, section_id: str):
        values = self._state.form_values
        for name, default in self.definition.section(section_id).initial_values().items():
            if name not in values:
                values[name] = default

    # -- saving ------------------------------------------------------------

    def save_current_section(self) -> SaveResult:
        if not self._save_lock.acquire(blocking=False):
            raise SaveInProgressError("A save is already running for this session")
        try:
            return self._save()
        finally:
            self._save_lock.release()

    def _save(self) -> SaveResult:
        self._ensure_open()
        with self._state_lock:
            section = self.definition.section(self._state.current_section_id)
            entity_id = self._state.entity_id
            values = dict(self._state.form_values)

        if entity_id is None and section.id != self.definition.first_section.id:
            raise SequencingError(
                f"Section '{section.id}' cannot be saved before '{self.definition.first_section.id}'"
            )

        validation = self.registry.validate(section.id, values)
        if not validation.valid:
            return SaveResult(
                status=SaveStatus.INVALID, section_id=section.id,
                validation=validation, entity_id=entity_id,
            )

        normalizer = self.definition.normalizer
        file_fields = {
            name: values[name]
            for name in self.definition.file_field_names(section.id)
            if values.get(name) is not None
        }
        labels = {name: normalizer.spec(name).upload_label for name in file_fields}
        try:
            urls = self.coordinator.resolve(file_fields, labels)
        except UploadError as e:
            if self._closed:
                return self._discarded(section.id)
            return SaveResult(
                status=SaveStatus.UPLOAD_FAILED, section_id=section.id, validation=validation,
                error=e.message, failed_fields=tuple(e.failed_fields), entity_id=entity_id,
            )

        payload = self.builder.build(values, section.field_names, urls, section.send_empty_lists)
        try:
            if entity_id is None:
                entity_id = self.resource.create_entity(payload)
                if not entity_id:
                    raise PersistenceError("The resource did not return an id for the new entity")
                logger.info("Created %s %s from section %s", self.definition.entity_kind, entity_id, section.id)
            else:
                self.resource.update_entity(entity_id, payload)
                logger.info("Updated %s %s from section %s", self.definition.entity_kind, entity_id, section.id)
        except PersistenceError as e:
            logger.warning("Saving section %s failed: %s", section.id, e.message)
            if self._closed:
                return self._discarded(section.id)
            return SaveResult(
                status=SaveStatus.PERSISTENCE_FAILED, section_id=section.id, validation=validation,
                error=e.message, entity_id=self._state.entity_id,
            )

        with self._state_lock:
            if self._closed:
                return self._discarded(section.id)
            return self._commit(section.id, entity_id, values, urls, validation)

    def _discarded(self, section_id: str) -> SaveResult:
        logger.info("Discarding result of section %s: session closed", section_id)
        return SaveResult(status=SaveStatus.DISCARDED, section_id=section_id)

    def _commit(self, section_id, entity_id, saved_values, urls, validation) -> SaveResult:
        s = self._state
        s.entity_id = entity_id
        s.resolved_file_urls.update(urls)
        for name, url in urls.items():
            # a file swapped while the save was running stays pending
            if s.form_values.get(name) is saved_values.get(name):
                s.form_values[name] = ExistingFile(url)
                s.pending_files.pop(name, None)
        s.completed_section_ids.add(section_id)

        nxt = self.definition.next_section(section_id)
        if nxt is None:
            s.wizard_completed = True
        else:
            for sid in self.definition.section_ids[: self.definition.index(nxt.id) + 1]:
                if sid not in s.unlocked_section_ids:
                    s.unlocked_section_ids.append(sid)
            s.current_section_id = nxt.id
            self._apply_defaults(nxt.id)

        return SaveResult(
            status=SaveStatus.SAVED,
            section_id=section_id,
            validation=validation,
            entity_id=entity_id,
            next_section_id=nxt.id if nxt else None,
            wizard_completed=s.wizard_completed,
        )

    # -- edit mode / lifecycle ---------------------------------------------

    def hydrate_from_entity(self, entity: Mapping[str, Any]):
        """Load a persisted entity for editing; every section becomes reachable."""
        self._ensure_open()
        entity_id = entity.get("id")
        if entity_id is None or entity_id == "":
            raise SequencingError("Cannot edit an entity without an id")
        if not self._save_lock.acquire(blocking=False):
            raise SaveInProgressError("A save is already running for this session")
        try:
            with self._state_lock:
                s = self._state
                if s.entity_id is not None and str(s.entity_id) != str(entity_id):
                    raise SequencingError(
                        f"Session is bound to entity {s.entity_id}, not {entity_id}"
                    )
                normalizer = self.definition.normalizer
                client = normalizer.to_client_shape(entity)
                values = {name: value for name, value in client.items() if name in normalizer}

                s.entity_id = entity_id
                s.form_values = values
                s.pending_files = {}
                s.resolved_file_urls = {
                    name: value.url for name, value in values.items() if isinstance(value, ExistingFile)
                }
                s.unlocked_section_ids = list(self.definition.section_ids)
                s.completed_section_ids = {
                    section.id for section in self.definition.sections
                    if not any(
                        is_empty(values.get(name))
                        for name in self.registry.required_fields(section.id, values)
                    )
                }
                s.current_section_id = self.definition.first_section.id
                s.wizard_completed = False
                logger.info("Hydrated %s %s", self.definition.entity_kind, entity_id)
        finally:
            self._save_lock.release()

    def abandon(self):
        with self._state_lock:
            self._closed = True
