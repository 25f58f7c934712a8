"""Interfaces the wizard engine needs from the outside world."""
from typing import Any, Dict, Protocol

from vendor_console.wizard.values import NewFile


class EntityResource(Protocol):
    def create_entity(self, payload: Dict[str, Any]) -> str:
        ...

    def update_entity(self, entity_id: str, payload: Dict[str, Any]) -> None:
        ...

    def fetch_entity(self, entity_id: str) -> Dict[str, Any]:
        ...


class FileUploader(Protocol):
    def upload_file(self, handle: NewFile, label: str) -> str:
        ...
