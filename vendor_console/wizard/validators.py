import datetime
from typing import Iterable, Optional

from wtforms.validators import StopValidation, ValidationError

from vendor_console.wizard.values import CompositeDate, ExistingFile, NewFile


class SubsetOf:
    """Every item of a list value must be one of ``values``."""

    def __init__(self, values: Iterable[str], message: Optional[str] = None):
        self.values = tuple(values)
        self.message = message

    def __call__(self, form, field):
        unknown = [item for item in (field.data or []) if item not in self.values]
        if unknown:
            message = self.message or "Invalid selection: %(items)s."
            raise ValidationError(message % {"items": ", ".join(map(str, unknown))})


class Accepted:
    """Terms-style checkbox that must be ticked."""

    def __init__(self, message: Optional[str] = None):
        self.message = message or "This must be accepted."

    def __call__(self, form, field):
        if field.data is not True:
            raise StopValidation(self.message)


class FileExtensions:
    """Restrict new uploads to a set of extensions; existing files are not re-checked."""

    def __init__(self, extensions: Iterable[str], message: Optional[str] = None):
        self.extensions = {ext.lower().lstrip(".") for ext in extensions}
        self.message = message

    def __call__(self, form, field):
        value = field.data
        if isinstance(value, ExistingFile):
            return
        if not isinstance(value, NewFile):
            raise StopValidation("Not a valid file.")
        if value.extension not in self.extensions:
            allowed = ", ".join(sorted(self.extensions))
            raise ValidationError(self.message or f"File must be one of: {allowed}.")


class ValidCalendarDate:
    def __init__(self, not_after_today: bool = False, message: Optional[str] = None):
        self.not_after_today = not_after_today
        self.message = message

    def __call__(self, form, field):
        value = field.data
        if not isinstance(value, CompositeDate) or not value.is_complete():
            raise StopValidation(self.message or "Enter a complete date.")
        try:
            parsed = value.to_date()
        except ValueError:
            raise StopValidation(self.message or "Not a valid calendar date.")
        if self.not_after_today and parsed > datetime.date.today():
            raise ValidationError(self.message or "Date cannot be in the future.")
