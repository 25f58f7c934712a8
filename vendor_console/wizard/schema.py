"""Section definitions and the per-section validation registry."""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from wtforms import Form
from wtforms.validators import ValidationError

from vendor_console.errors import UnknownSectionError
from vendor_console.wizard.normalizer import FieldNormalizer, FieldSpec
from vendor_console.wizard.values import is_empty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionalRule:
    """When ``when_field`` equals ``when_equals``, ``then_require_fields`` become required.

    If the field holds a list, the rule applies when ``when_equals`` is one of its items.
    """

    when_field: str
    when_equals: Any
    then_require_fields: Tuple[str, ...]
    message: Optional[str] = None

    def applies(self, form_values: Mapping[str, Any]) -> bool:
        value = form_values.get(self.when_field)
        if isinstance(value, (list, tuple, set, frozenset)):
            return self.when_equals in value
        return value == self.when_equals


@dataclass(frozen=True)
class SectionDefinition:
    id: str
    display_name: str
    field_names: Tuple[str, ...]
    required_field_names: Tuple[str, ...] = ()
    conditional_requirements: Tuple[ConditionalRule, ...] = ()
    form_class: Optional[Type[Form]] = None
    send_empty_lists: bool = False
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def initial_values(self) -> Dict[str, Any]:
        return {
            name: (default() if callable(default) else default)
            for name, default in self.defaults.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "field_names": list(self.field_names),
            "required_field_names": list(self.required_field_names),
            "conditional_requirements": [
                {
                    "when_field": rule.when_field,
                    "when_equals": rule.when_equals,
                    "then_require_fields": list(rule.then_require_fields),
                }
                for rule in self.conditional_requirements
            ],
        }


class WizardDefinition:
    def __init__(
        self,
        name: str,
        title: str,
        entity_kind: str,
        sections: Sequence[SectionDefinition],
        fields: Sequence[FieldSpec],
    ):
        if not sections:
            raise ValueError(f"Wizard '{name}' has no sections")
        self.name = name
        self.title = title
        self.entity_kind = entity_kind
        self.sections: Tuple[SectionDefinition, ...] = tuple(sections)
        self.normalizer = FieldNormalizer(fields)
        self._by_id: Dict[str, SectionDefinition] = {}
        for section in self.sections:
            if section.id in self._by_id:
                raise ValueError(f"Duplicate section id '{section.id}' in wizard '{name}'")
            self._by_id[section.id] = section
            self._check_fields(section)

    def _check_fields(self, section: SectionDefinition):
        referenced = set(section.field_names) | set(section.required_field_names)
        for rule in section.conditional_requirements:
            referenced.add(rule.when_field)
            referenced.update(rule.then_require_fields)
        unknown = sorted(n for n in referenced if n not in self.normalizer)
        if unknown:
            raise ValueError(f"Section '{section.id}' references undeclared fields: {unknown}")
        outside = set(section.required_field_names) - set(section.field_names)
        if outside:
            raise ValueError(f"Section '{section.id}' requires fields it does not own: {sorted(outside)}")

    def section(self, section_id: str) -> SectionDefinition:
        try:
            return self._by_id[section_id]
        except KeyError:
            raise UnknownSectionError(section_id) from None

    def index(self, section_id: str) -> int:
        self.section(section_id)
        return self.section_ids.index(section_id)

    @property
    def first_section(self) -> SectionDefinition:
        return self.sections[0]

    @property
    def section_ids(self) -> List[str]:
        return [s.id for s in self.sections]

    def next_section(self, section_id: str) -> Optional[SectionDefinition]:
        position = self.index(section_id) + 1
        return self.sections[position] if position < len(self.sections) else None

    @property
    def field_names(self) -> List[str]:
        return self.normalizer.field_names

    def file_field_names(self, section_id: str) -> List[str]:
        return [
            name for name in self.section(section_id).field_names
            if self.normalizer.is_file_field(name)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "entity_kind": self.entity_kind,
            "sections": [s.to_dict() for s in self.sections],
            "fields": [
                {"name": spec.name, "server_name": spec.server_name, "kind": spec.kind, "label": spec.label}
                for spec in (self.normalizer.spec(n) for n in self.field_names)
            ],
        }

    def __repr__(self):
        return f"<WizardDefinition {self.name} sections={self.section_ids}>"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    field_errors: Mapping[str, str]

    @classmethod
    def from_errors(cls, errors: Dict[str, str]) -> "ValidationResult":
        return cls(valid=not errors, field_errors=MappingProxyType(dict(errors)))

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "field_errors": dict(self.field_errors)}


def _first_format_error(form: Form, name: str) -> Optional[str]:
    field_ = form[name]
    if field_.process_errors:
        return str(field_.process_errors[0])
    chain = list(field_.validators)
    inline = getattr(type(form), f"validate_{name}", None)
    if inline is not None:
        chain.append(inline)
    for validator in chain:
        try:
            validator(form, field_)
        except ValidationError as e:
            # StopValidation is a ValidationError; an empty message means "stop quietly"
            if e.args and e.args[0]:
                return str(e.args[0])
            return None
    return None


class SectionSchemaRegistry:
    """Validates one section of a wizard against the current form values."""

    def __init__(self, definition: WizardDefinition):
        self.definition = definition

    def _label(self, name: str) -> str:
        spec = self.definition.normalizer.spec(name)
        return spec.label if spec else name

    def required_fields(self, section_id: str, form_values: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        """Field name -> custom message (or None) for everything required right now."""
        section = self.definition.section(section_id)
        required: Dict[str, Optional[str]] = {name: None for name in section.required_field_names}
        for rule in section.conditional_requirements:
            if rule.applies(form_values):
                for name in rule.then_require_fields:
                    if required.get(name) is None:
                        required[name] = rule.message
        return required

    def validate(self, section_id: str, form_values: Mapping[str, Any]) -> ValidationResult:
        section = self.definition.section(section_id)
        errors: Dict[str, str] = {}

        for name, message in self.required_fields(section_id, form_values).items():
            if is_empty(form_values.get(name)):
                errors[name] = message or f"{self._label(name)} is required."

        if section.form_class is not None:
            form = section.form_class(
                data={name: form_values.get(name) for name in section.field_names}
            )
            for name in section.field_names:
                if name in errors or name not in form or is_empty(form_values.get(name)):
                    continue
                message = _first_format_error(form, name)
                if message:
                    errors[name] = message

        result = ValidationResult.from_errors(errors)
        if not result.valid:
            logger.debug("Section %s invalid: %s", section_id, sorted(errors))
        return result

    def missing_required(self, form_values: Mapping[str, Any]) -> Dict[str, List[str]]:
        """Section id -> required fields that are still empty, for sections with gaps."""
        missing: Dict[str, List[str]] = {}
        for section in self.definition.sections:
            names = [
                name for name in self.required_fields(section.id, form_values)
                if is_empty(form_values.get(name))
            ]
            if names:
                missing[section.id] = names
        return missing
