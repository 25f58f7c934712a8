class VendorConsoleError(Exception):
    """Base exception for the vendor console."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SectionValidationError(VendorConsoleError):
    """A section failed its schema; carries the per-field messages."""

    def __init__(self, section_id: str, result):
        super().__init__(f"Section '{section_id}' has invalid fields")
        self.section_id = section_id
        self.result = result


class UploadError(VendorConsoleError):
    def __init__(self, message: str, field_name=None, failed_fields=None):
        super().__init__(message)
        self.field_name = field_name
        self.failed_fields = list(failed_fields or ([field_name] if field_name else []))


class PersistenceError(VendorConsoleError):
    pass


class SequencingError(VendorConsoleError):
    """The wizard was driven in an order it does not allow.

    These point at a caller bug and are raised, never reported as a save result.
    """


class UnknownSectionError(SequencingError):
    def __init__(self, section_id: str):
        super().__init__(f"Unknown section: {section_id}")
        self.section_id = section_id


class LockedSectionError(SequencingError):
    def __init__(self, section_id: str):
        super().__init__(f"Section '{section_id}' is locked; save the previous sections first")
        self.section_id = section_id


class UnknownFieldError(SequencingError):
    def __init__(self, field_name: str):
        super().__init__(f"Unknown field: {field_name}")
        self.field_name = field_name


class SaveInProgressError(SequencingError):
    pass


class SessionClosedError(SequencingError):
    pass
