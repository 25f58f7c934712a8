"""Client <-> server field shapes.

Every wizard field is declared once as a ``FieldSpec``: its client name, the
name the remote resource uses, and its kind. ``FieldNormalizer`` uses that
table in both directions. Names missing from the table pass through unchanged.
"""
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from vendor_console.wizard.values import CompositeDate, ExistingFile

logger = logging.getLogger(__name__)

ABSENT = object()
_MAX_DECODE_DEPTH = 8


class FieldKind:
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    YES_NO = "yes_no"
    LIST = "list"
    DATE = "date"
    FILE = "file"
    STRUCTURED = "structured"

    ALL = [TEXT, NUMBER, BOOLEAN, YES_NO, LIST, DATE, FILE, STRUCTURED]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    server_name: Optional[str] = None
    kind: str = FieldKind.TEXT
    label: Optional[str] = None
    upload_label: Optional[str] = None

    def __post_init__(self):
        if self.kind not in FieldKind.ALL:
            raise ValueError(f"Unknown field kind '{self.kind}' for {self.name}")
        if self.server_name is None:
            object.__setattr__(self, "server_name", self.name)
        if self.label is None:
            object.__setattr__(self, "label", self.name)
        if self.kind == FieldKind.FILE and self.upload_label is None:
            object.__setattr__(self, "upload_label", self.server_name.upper())


def _looks_like_container(text: str) -> bool:
    return (text.startswith("[") and text.endswith("]")) or (
        text.startswith("{") and text.endswith("}")
    )


def _parse_pg_array(text: str) -> Optional[List[str]]:
    """Parse a Postgres array literal like ``{a,"b c"}``; None if it is not one."""
    if not (text.startswith("{") and text.endswith("}")):
        return None
    inner = text[1:-1]
    if not inner.strip():
        return []
    items, current = [], []
    in_quotes = escaped = False
    for char in inner:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            items.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if in_quotes or escaped:
        return None
    items.append("".join(current).strip())
    return items


def _decode_text(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    # escaped quotes without the surrounding string, e.g. [\"A\",\"B\"]
    cleaned = text.replace('\\"', '"')
    if len(cleaned) > 1 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    if cleaned != text and _looks_like_container(cleaned):
        try:
            return json.loads(cleaned)
        except ValueError:
            pass
    pg_items = _parse_pg_array(text)
    if pg_items is not None:
        return pg_items
    return ABSENT


def decode_value(value: Any, list_field: bool = False) -> Any:
    """Unwrap a value that upstream may have JSON-encoded one or more times.

    Decoding stops at a native list, a non-string value, or a string that no
    longer decodes. That last string is comma-split for list fields and
    returned as-is otherwise.
    """
    current = value
    for _ in range(_MAX_DECODE_DEPTH):
        if isinstance(current, (list, tuple)):
            items = [item for item in current if item is not None and item != ""]
            if (
                len(items) == 1
                and isinstance(items[0], str)
                and _looks_like_container(items[0].strip())
            ):
                current = items[0]
                continue
            return items
        if isinstance(current, dict):
            if len(current) != 1:
                return current
            key, inner = next(iter(current.items()))
            candidates = [
                c for c in (key, inner) if isinstance(c, str) and _looks_like_container(c.strip())
            ]
            if not candidates:
                return current
            current = candidates[0]
            continue
        if not isinstance(current, str):
            return current
        text = current.strip()
        if not text:
            return [] if list_field else current
        decoded = _decode_text(text)
        if decoded is ABSENT:
            break
        current = decoded

    if isinstance(current, str) and list_field:
        return [part.strip() for part in current.split(",") if part.strip()]
    return current


def decode_list(value: Any) -> List[Any]:
    decoded = decode_value(value, list_field=True)
    if decoded is None:
        return []
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, dict):
        return [item for item in decoded.values() if item not in (None, "")]
    return [decoded]


def coerce_number(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return ABSENT
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else ABSENT
    if not isinstance(value, str):
        return ABSENT
    text = value.strip()
    if not text:
        return ABSENT
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        logger.debug("Dropping non-numeric value %r", value)
        return ABSENT
    return number if math.isfinite(number) else ABSENT


def _boolean(value):
    return value if isinstance(value, bool) else ABSENT


def _yes_no_to_server(value):
    if isinstance(value, str):
        answer = value.strip().lower()
        if answer == "yes":
            return True
        if answer == "no":
            return False
    return ABSENT


def _yes_no_to_client(value):
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, str) and value.strip().lower() in ("yes", "no"):
        return value.strip().lower()
    return ABSENT


def _text(value):
    return ABSENT if value is None else value


def _list_to_server(value):
    if value is None:
        return ABSENT
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [item for item in value if item is not None and item != ""]


def _list_to_client(value):
    return ABSENT if value is None else decode_list(value)


def _date_to_server(value):
    try:
        date = CompositeDate.coerce(value)
    except ValueError:
        logger.debug("Dropping unparseable date %r", value)
        return ABSENT
    if date is None or not date.is_complete():
        return ABSENT
    return date.to_iso()


def _date_to_client(value):
    try:
        date = CompositeDate.coerce(value)
    except ValueError:
        logger.warning("Ignoring unparseable date from server: %r", value)
        return ABSENT
    return ABSENT if date is None else date


def _file_to_client(value):
    if isinstance(value, ExistingFile):
        return value
    if isinstance(value, str) and value.strip():
        return ExistingFile(value.strip())
    return ABSENT


def _structured_to_server(value):
    return ABSENT if value is None else decode_value(value)


_TO_SERVER = {
    FieldKind.TEXT: _text,
    FieldKind.NUMBER: coerce_number,
    FieldKind.BOOLEAN: _boolean,
    FieldKind.YES_NO: _yes_no_to_server,
    FieldKind.LIST: _list_to_server,
    FieldKind.DATE: _date_to_server,
    FieldKind.STRUCTURED: _structured_to_server,
}

_TO_CLIENT = {
    FieldKind.TEXT: _text,
    FieldKind.NUMBER: coerce_number,
    FieldKind.BOOLEAN: _boolean,
    FieldKind.YES_NO: _yes_no_to_client,
    FieldKind.LIST: _list_to_client,
    FieldKind.DATE: _date_to_client,
    FieldKind.FILE: _file_to_client,
    FieldKind.STRUCTURED: _structured_to_server,
}


class FieldNormalizer:
    def __init__(self, fields: Iterable[FieldSpec]):
        self._by_name: Dict[str, FieldSpec] = {}
        self._by_server: Dict[str, FieldSpec] = {}
        for spec in fields:
            if spec.name in self._by_name:
                raise ValueError(f"Field declared twice: {spec.name}")
            if spec.server_name in self._by_server:
                raise ValueError(f"Server field mapped twice: {spec.server_name}")
            self._by_name[spec.name] = spec
            self._by_server[spec.server_name] = spec

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    @property
    def field_names(self) -> List[str]:
        return list(self._by_name)

    def spec(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def server_name(self, name: str) -> str:
        spec = self._by_name.get(name)
        return spec.server_name if spec else name

    def client_name(self, server_name: str) -> str:
        spec = self._by_server.get(server_name)
        return spec.name if spec else server_name

    def is_file_field(self, name: str) -> bool:
        spec = self._by_name.get(name)
        return spec is not None and spec.kind == FieldKind.FILE

    def to_server_shape(
        self, client_values: Mapping[str, Any], section_field_names: Optional[Iterable[str]] = None
    ) -> Dict[str, Any]:
        """Rename and coerce client values; values that coerce to nothing are omitted.

        File fields are skipped; their URLs are overlaid by the payload builder.
        """
        names = client_values.keys() if section_field_names is None else section_field_names
        payload: Dict[str, Any] = {}
        for name in names:
            if name not in client_values:
                continue
            value = client_values[name]
            spec = self._by_name.get(name)
            if spec is None:
                if value is not None:
                    payload[name] = value
                continue
            if spec.kind == FieldKind.FILE:
                continue
            converted = _TO_SERVER[spec.kind](value)
            if converted is not ABSENT:
                payload[spec.server_name] = converted
        return payload

    def to_client_shape(self, server_entity: Mapping[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for key, raw in server_entity.items():
            spec = self._by_server.get(key)
            if spec is None:
                values[key] = raw
                continue
            converted = _TO_CLIENT[spec.kind](raw)
            if converted is not ABSENT:
                values[spec.name] = converted
        return values

    def parse_input(self, name: str, raw: Any) -> Any:
        """Turn a JSON value received from the API into the client value for ``name``.

        Raises ValueError when the JSON cannot represent that field. File fields
        only accept None here; new files arrive through the upload endpoint.
        """
        spec = self._by_name.get(name)
        if spec is None or raw is None:
            return raw
        if spec.kind == FieldKind.DATE:
            return CompositeDate.coerce(raw)
        if spec.kind == FieldKind.FILE:
            raise ValueError(f"{name} can only be set by uploading a file")
        if spec.kind == FieldKind.BOOLEAN:
            if not isinstance(raw, bool):
                raise ValueError(f"{name} expects true or false")
            return raw
        if spec.kind == FieldKind.LIST:
            return decode_list(raw)
        if spec.kind == FieldKind.STRUCTURED:
            return raw
        if isinstance(raw, (dict, list)):
            raise ValueError(f"{name} expects a single value")
        if spec.kind == FieldKind.TEXT and not isinstance(raw, str):
            return str(raw)
        return raw
