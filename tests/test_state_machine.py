import pytest

from vendor_console.errors import (
    LockedSectionError,
    SaveInProgressError,
    SequencingError,
    SessionClosedError,
    UnknownFieldError,
    UnknownSectionError,
)
from vendor_console.wizard.state_machine import SaveStatus, SectionStatus, WizardStateMachine
from vendor_console.wizard.values import ExistingFile, NewFile

from conftest import FakeUploader


@pytest.fixture
def machine(demo_definition, resource, uploader):
    return WizardStateMachine(demo_definition, resource, uploader)


def _assert_prefix_closed(machine):
    snap = machine.get_state()
    order = machine.definition.section_ids
    assert list(snap.unlocked_section_ids) == order[: len(snap.unlocked_section_ids)]
    assert snap.current_section_id in snap.unlocked_section_ids


def test_initial_state(machine):
    snap = machine.get_state()
    assert snap.entity_id is None
    assert snap.current_section_id == "company"
    assert snap.unlocked_section_ids == ("company",)
    assert snap.form_values == {"foundedYear": "2001"}
    assert machine.section_statuses() == {
        "company": SectionStatus.ACTIVE,
        "declaration": SectionStatus.LOCKED,
        "preferences": SectionStatus.LOCKED,
    }
    assert machine.progress() == {"completed": 0, "total": 3}


def test_first_save_creates_then_later_saves_update(machine, resource):
    machine.set_field_value("companyName", "Acme")
    result = machine.save_current_section()

    assert result.status == SaveStatus.SAVED
    assert result.entity_id == "ent-1"
    assert result.next_section_id == "declaration"
    assert resource.created == [{"company_name": "Acme", "founded_year": 2001}]
    _assert_prefix_closed(machine)

    machine.set_field_value("controlledItems", "no")
    result = machine.save_current_section()

    assert result.status == SaveStatus.SAVED
    assert len(resource.created) == 1
    assert resource.updated == [("ent-1", {"controlled_items": False})]
    assert machine.get_state().unlocked_section_ids == ("company", "declaration", "preferences")
    _assert_prefix_closed(machine)


def test_completing_the_last_section_finishes_the_wizard(machine):
    machine.set_field_value("companyName", "Acme")
    machine.save_current_section()
    machine.set_field_value("controlledItems", "no")
    machine.save_current_section()
    result = machine.save_current_section()

    assert result.wizard_completed
    assert result.next_section_id is None
    assert machine.get_state().wizard_completed
    assert set(machine.section_statuses().values()) == {SectionStatus.COMPLETED}
    assert machine.progress() == {"completed": 3, "total": 3}


def test_locked_and_unknown_sections_cannot_be_entered(machine):
    with pytest.raises(LockedSectionError):
        machine.enter_section("preferences")
    with pytest.raises(UnknownSectionError):
        machine.enter_section("billing")
    assert machine.get_state().current_section_id == "company"


def test_invalid_section_leaves_state_untouched(machine, resource, uploader):
    machine.set_field_value("vatCertificate", NewFile("vat.pdf"))
    before = machine.get_state()

    result = machine.save_current_section()

    assert result.status == SaveStatus.INVALID
    assert result.validation.field_errors == {"companyName": "Company name is required."}
    assert machine.get_state() == before
    assert resource.created == []
    assert uploader.calls == []


def test_conditional_requirement_blocks_save(machine, resource):
    machine.set_field_value("companyName", "Acme")
    machine.save_current_section()
    machine.set_field_value("controlledItems", "yes")

    result = machine.save_current_section()
    assert result.status == SaveStatus.INVALID
    assert "endUseMarket" in result.validation.field_errors

    machine.set_field_value("endUseMarket", ["Military"])
    assert machine.save_current_section().ok
    assert resource.updated[-1] == ("ent-1", {"controlled_items": True, "end_use_markets": ["Military"]})


def test_upload_failure_reports_and_keeps_state(demo_definition, resource):
    uploader = FakeUploader(fail_on={"vat.pdf"})
    machine = WizardStateMachine(demo_definition, resource, uploader)
    machine.set_field_value("companyName", "Acme")
    machine.set_field_value("vatCertificate", NewFile("vat.pdf"))

    result = machine.save_current_section()

    assert result.status == SaveStatus.UPLOAD_FAILED
    assert result.failed_fields == ("vatCertificate",)
    assert resource.created == []
    snap = machine.get_state()
    assert snap.entity_id is None
    assert snap.current_section_id == "company"
    assert "vatCertificate" in snap.pending_files


def test_persistence_failure_can_be_retried(machine, resource):
    machine.set_field_value("companyName", "Acme")
    resource.fail_next = True

    result = machine.save_current_section()
    assert result.status == SaveStatus.PERSISTENCE_FAILED
    assert result.error == "backend unavailable"
    assert machine.get_state().entity_id is None
    assert machine.get_state().current_section_id == "company"

    assert machine.save_current_section().ok
    assert machine.get_state().entity_id == "ent-1"


def test_uploaded_files_are_reused_on_later_saves(machine, resource, uploader):
    machine.set_field_value("companyName", "Acme")
    machine.set_field_value("vatCertificate", NewFile("vat.pdf", b"%PDF"))
    machine.save_current_section()

    url = "https://cdn.test/vendor_vat_certificate/vat.pdf"
    snap = machine.get_state()
    assert snap.form_values["vatCertificate"] == ExistingFile(url)
    assert snap.pending_files == {}
    assert snap.resolved_file_urls == {"vatCertificate": url}
    assert resource.created[0]["vat_certificate_url"] == url
    assert uploader.calls == [("vat.pdf", "VENDOR_VAT_CERTIFICATE")]

    machine.enter_section("company")
    machine.set_field_value("companyName", "Acme Ltd")
    assert machine.save_current_section().ok

    assert len(uploader.calls) == 1
    assert resource.updated == [
        ("ent-1", {"company_name": "Acme Ltd", "founded_year": 2001, "vat_certificate_url": url})
    ]


def test_file_replaced_during_save_stays_pending(machine, resource):
    machine.set_field_value("companyName", "Acme")
    machine.set_field_value("vatCertificate", NewFile("old.pdf"))
    replacement = NewFile("new.pdf")
    resource.on_call = lambda: machine.set_field_value("vatCertificate", replacement)

    assert machine.save_current_section().ok

    snap = machine.get_state()
    assert snap.form_values["vatCertificate"] is replacement
    assert snap.pending_files == {"vatCertificate": replacement}


def test_clearing_a_file_drops_its_url(machine):
    machine.set_field_value("companyName", "Acme")
    machine.set_field_value("vatCertificate", NewFile("vat.pdf"))
    machine.save_current_section()

    machine.set_field_value("vatCertificate", None)
    snap = machine.get_state()
    assert snap.resolved_file_urls == {}
    assert snap.form_values["vatCertificate"] is None


def test_set_field_value_checks_names_and_file_values(machine):
    with pytest.raises(UnknownFieldError):
        machine.set_field_value("nickname", "x")
    with pytest.raises(ValueError):
        machine.set_field_value("vatCertificate", "vat.pdf")


def test_second_save_while_one_is_running_is_rejected(machine, resource):
    rejected = []

    def save_again():
        try:
            machine.save_current_section()
        except SaveInProgressError as e:
            rejected.append(e)

    machine.set_field_value("companyName", "Acme")
    resource.on_call = save_again

    assert machine.save_current_section().ok
    assert len(rejected) == 1
    assert len(resource.created) == 1


def test_abandoned_session_discards_late_result(machine, resource):
    machine.set_field_value("companyName", "Acme")
    resource.on_call = machine.abandon

    result = machine.save_current_section()

    assert result.status == SaveStatus.DISCARDED
    assert machine.get_state().entity_id is None
    with pytest.raises(SessionClosedError):
        machine.set_field_value("companyName", "Other")
    with pytest.raises(SessionClosedError):
        machine.save_current_section()


def test_hydrate_unlocks_everything_and_reuses_files(machine, resource, uploader):
    entity = {
        "id": "ent-9",
        "company_name": "Acme",
        "vat_certificate_url": "https://cdn.test/vat.pdf",
        "controlled_items": True,
        "end_use_markets": '{"[\\"Military\\"]"}',
        "created_by": "import-job",
    }
    resource.entities["ent-9"] = dict(entity)

    machine.hydrate_from_entity(entity)

    snap = machine.get_state()
    assert snap.entity_id == "ent-9"
    assert snap.unlocked_section_ids == ("company", "declaration", "preferences")
    assert snap.completed_section_ids == ("company", "declaration", "preferences")
    assert snap.form_values == {
        "companyName": "Acme",
        "vatCertificate": ExistingFile("https://cdn.test/vat.pdf"),
        "controlledItems": "yes",
        "endUseMarket": ["Military"],
    }
    assert snap.resolved_file_urls == {"vatCertificate": "https://cdn.test/vat.pdf"}

    machine.enter_section("declaration")
    assert machine.save_current_section().ok
    assert resource.created == []
    assert uploader.calls == []
    assert resource.updated == [
        ("ent-9", {"controlled_items": True, "end_use_markets": ["Military"]})
    ]


def test_hydrate_marks_incomplete_sections(machine):
    machine.hydrate_from_entity({"id": "ent-3", "controlled_items": True})
    assert machine.get_state().completed_section_ids == ("preferences",)
    assert machine.missing_required() == {
        "company": ["companyName"],
        "declaration": ["endUseMarket"],
    }


def test_hydrate_requires_a_matching_id(machine):
    with pytest.raises(SequencingError):
        machine.hydrate_from_entity({"company_name": "Acme"})

    machine.hydrate_from_entity({"id": "ent-1"})
    with pytest.raises(SequencingError):
        machine.hydrate_from_entity({"id": "ent-2"})


def test_snapshot_is_read_only(machine):
    snap = machine.get_state()
    with pytest.raises(TypeError):
        snap.form_values["companyName"] = "Acme"
    assert "companyName" not in machine.get_state().form_values


def test_raise_for_status(machine, resource):
    from vendor_console.errors import PersistenceError, SectionValidationError

    with pytest.raises(SectionValidationError) as exc:
        machine.save_current_section().raise_for_status()
    assert exc.value.result.field_errors == {"companyName": "Company name is required."}

    machine.set_field_value("companyName", "Acme")
    resource.fail_next = True
    with pytest.raises(PersistenceError):
        machine.save_current_section().raise_for_status()

    result = machine.save_current_section()
    assert result.raise_for_status() is result


def test_file_field_rejects_urls_it_did_not_upload(machine, uploader):
    with pytest.raises(ValueError):
        machine.set_field_value("vatCertificate", ExistingFile("https://elsewhere.test/x.pdf"))
    assert "vatCertificate" not in machine.get_state().form_values

    machine.set_field_value("companyName", "Acme")
    machine.set_field_value("vatCertificate", NewFile("vat.pdf"))
    machine.save_current_section()
    url = machine.get_state().resolved_file_urls["vatCertificate"]

    machine.set_field_value("vatCertificate", NewFile("other.pdf"))
    machine.set_field_value("vatCertificate", ExistingFile(url))
    with pytest.raises(ValueError):
        machine.set_field_value("vatCertificate", ExistingFile("https://elsewhere.test/x.pdf"))

    snap = machine.get_state()
    assert snap.form_values["vatCertificate"] == ExistingFile(url)
    assert snap.resolved_file_urls == {"vatCertificate": url}
    assert snap.pending_files == {}
