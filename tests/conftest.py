import threading

import pytest
from wtforms import Form, StringField
from wtforms.validators import Length

from vendor_console import create_app
from vendor_console.config import TestConfig
from vendor_console.errors import PersistenceError, UploadError
from vendor_console.extensions import db
from vendor_console.wizard.normalizer import FieldKind as K
from vendor_console.wizard.normalizer import FieldSpec as F
from vendor_console.wizard.schema import ConditionalRule, SectionDefinition, WizardDefinition
from vendor_console.wizard.validators import FileExtensions
from vendor_console.wizard.wizard_forms import FileRefField, ListField


class FakeResource:
    def __init__(self):
        self.created = []
        self.updated = []
        self.entities = {}
        self.fail_next = False
        self.on_call = None

    def _maybe_fail(self):
        if self.on_call is not None:
            self.on_call()
        if self.fail_next:
            self.fail_next = False
            raise PersistenceError("backend unavailable")

    def create_entity(self, payload):
        self._maybe_fail()
        entity_id = f"ent-{len(self.created) + 1}"
        self.created.append(dict(payload))
        self.entities[entity_id] = dict(payload, id=entity_id)
        return entity_id

    def update_entity(self, entity_id, payload):
        self._maybe_fail()
        self.updated.append((entity_id, dict(payload)))
        self.entities[entity_id].update(payload)

    def fetch_entity(self, entity_id):
        return dict(self.entities[entity_id])


class FakeUploader:
    def __init__(self, fail_on=(), barrier=None):
        self.calls = []
        self.fail_on = set(fail_on)
        self.barrier = barrier
        self._lock = threading.Lock()

    def upload_file(self, handle, label):
        with self._lock:
            self.calls.append((handle.filename, label))
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        if handle.filename in self.fail_on:
            raise UploadError(f"storage rejected {handle.filename}")
        return f"https://cdn.test/{label.lower()}/{handle.filename}"


class CompanyForm(Form):
    companyName = StringField("Company name", validators=[Length(max=20)])
    vatCertificate = FileRefField("VAT certificate", validators=[FileExtensions(["pdf", "png"])])


class DeclarationForm(Form):
    endUseMarket = ListField("End-use market")


DEMO_FIELDS = [
    F("companyName", "company_name", label="Company name"),
    F("foundedYear", "founded_year", K.NUMBER, label="Founded"),
    F("issueDate", "issue_date", K.DATE, label="Issue date"),
    F("vatCertificate", "vat_certificate_url", K.FILE, label="VAT certificate",
      upload_label="VENDOR_VAT_CERTIFICATE"),
    F("tradeLicense", "trade_license_url", K.FILE, label="Trade license"),
    F("controlledItems", "controlled_items", K.YES_NO, label="Controlled items"),
    F("endUseMarket", "end_use_markets", K.LIST, label="End-use market"),
    F("termsAccepted", "terms_accepted", K.BOOLEAN, label="Terms"),
    F("tags", kind=K.LIST, label="Tags"),
]


def make_demo_definition():
    return WizardDefinition(
        name="demo",
        title="Demo onboarding",
        entity_kind="vendor_profile",
        fields=DEMO_FIELDS,
        sections=[
            SectionDefinition(
                id="company",
                display_name="Company",
                field_names=("companyName", "foundedYear", "issueDate", "vatCertificate", "tradeLicense"),
                required_field_names=("companyName",),
                form_class=CompanyForm,
                defaults={"foundedYear": "2001"},
            ),
            SectionDefinition(
                id="declaration",
                display_name="Declaration",
                field_names=("controlledItems", "endUseMarket", "termsAccepted"),
                required_field_names=("controlledItems",),
                conditional_requirements=(
                    ConditionalRule("controlledItems", "yes", ("endUseMarket",)),
                ),
                form_class=DeclarationForm,
                send_empty_lists=True,
            ),
            SectionDefinition(
                id="preferences",
                display_name="Preferences",
                field_names=("tags",),
            ),
        ],
    )


@pytest.fixture
def demo_definition():
    return make_demo_definition()


@pytest.fixture
def resource():
    return FakeResource()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
