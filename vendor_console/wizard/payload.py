from typing import Any, Dict, Iterable, Mapping, Optional

from vendor_console.wizard.normalizer import FieldNormalizer


class SubmissionPayloadBuilder:
    """Builds the exact body sent to the entity resource for one section save."""

    def __init__(self, normalizer: FieldNormalizer):
        self.normalizer = normalizer

    def build(
        self,
        client_values: Mapping[str, Any],
        section_field_names: Iterable[str],
        resolved_file_urls: Optional[Mapping[str, str]] = None,
        send_empty_lists: bool = False,
    ) -> Dict[str, Any]:
        names = list(section_field_names)
        shaped = self.normalizer.to_server_shape(client_values, names)

        payload: Dict[str, Any] = {}
        for key, value in shaped.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, list) and not value and not send_empty_lists:
                continue
            payload[key] = value

        for name, url in (resolved_file_urls or {}).items():
            if name in names and url:
                payload[self.normalizer.server_name(name)] = url
        return payload
