import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Mapping, Optional

from vendor_console.errors import UploadError
from vendor_console.wizard.collaborators import FileUploader
from vendor_console.wizard.values import ExistingFile, FileRef, NewFile

logger = logging.getLogger(__name__)


class FileUploadCoordinator:
    """Turns a section's file fields into persisted URLs.

    Existing files are returned as-is. New files are uploaded in parallel and the
    call waits for every upload; if any of them fails the whole resolution fails
    with an ``UploadError`` and no URLs are returned.
    """

    def __init__(self, uploader: FileUploader, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.uploader = uploader
        self.max_workers = max_workers

    def resolve(
        self, fields: Mapping[str, FileRef], labels: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        labels = labels or {}
        resolved: Dict[str, str] = {}
        pending: Dict[str, NewFile] = {}

        for name, ref in fields.items():
            if isinstance(ref, ExistingFile):
                resolved[name] = ref.url
            elif isinstance(ref, NewFile):
                pending[name] = ref
            else:
                raise TypeError(f"{name}: expected NewFile or ExistingFile, got {type(ref).__name__}")

        if not pending:
            return resolved

        failures: Dict[str, Exception] = {}
        workers = min(self.max_workers, len(pending))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload") as pool:
            futures = {
                pool.submit(self.uploader.upload_file, ref, labels.get(name, name.upper())): name
                for name, ref in pending.items()
            }
            for fut in as_completed(futures):
                name = futures[fut]
                try:
                    resolved[name] = fut.result()
                except Exception as e:
                    logger.warning("Upload of %s failed: %s", name, e)
                    failures[name] = e

        if failures:
            names = sorted(failures)
            first = failures[names[0]]
            message = getattr(first, "message", None) or str(first)
            raise UploadError(
                f"Upload failed for {', '.join(names)}: {message}",
                field_name=names[0],
                failed_fields=names,
            ) from first

        logger.info("Uploaded %d file(s): %s", len(pending), sorted(pending))
        return resolved
