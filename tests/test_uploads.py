import threading

import pytest

from vendor_console.errors import UploadError
from vendor_console.wizard.uploads import FileUploadCoordinator
from vendor_console.wizard.values import ExistingFile, NewFile

from conftest import FakeUploader


def test_existing_files_are_reused_without_uploading(uploader):
    coordinator = FileUploadCoordinator(uploader)
    urls = coordinator.resolve({"vatCertificate": ExistingFile("https://cdn.test/vat.pdf")})
    assert urls == {"vatCertificate": "https://cdn.test/vat.pdf"}
    assert uploader.calls == []


def test_new_files_upload_concurrently():
    # both uploads must be in flight at once for the barrier to open
    uploader = FakeUploader(barrier=threading.Barrier(2))
    coordinator = FileUploadCoordinator(uploader, max_workers=2)
    urls = coordinator.resolve(
        {"vatCertificate": NewFile("vat.pdf"), "tradeLicense": NewFile("license.pdf")},
        labels={"vatCertificate": "VENDOR_VAT_CERTIFICATE", "tradeLicense": "VENDOR_TRADE_LICENSE"},
    )
    assert urls == {
        "vatCertificate": "https://cdn.test/vendor_vat_certificate/vat.pdf",
        "tradeLicense": "https://cdn.test/vendor_trade_license/license.pdf",
    }


def test_one_failure_fails_the_whole_resolution():
    uploader = FakeUploader(fail_on={"license.pdf"})
    coordinator = FileUploadCoordinator(uploader)
    with pytest.raises(UploadError) as info:
        coordinator.resolve({
            "vatCertificate": NewFile("vat.pdf"),
            "tradeLicense": NewFile("license.pdf"),
            "profile": ExistingFile("https://cdn.test/profile.pdf"),
        })
    assert info.value.failed_fields == ["tradeLicense"]
    assert info.value.field_name == "tradeLicense"
    # the other upload was still awaited
    assert sorted(name for name, _ in uploader.calls) == ["license.pdf", "vat.pdf"]


def test_label_defaults_to_field_name(uploader):
    FileUploadCoordinator(uploader).resolve({"brochure": NewFile("b.pdf")})
    assert uploader.calls == [("b.pdf", "BROCHURE")]


def test_input_mapping_is_not_modified(uploader):
    fields = {"brochure": NewFile("b.pdf")}
    urls = FileUploadCoordinator(uploader).resolve(fields)
    assert fields == {"brochure": NewFile("b.pdf")}
    assert urls is not fields


def test_rejects_non_file_values(uploader):
    with pytest.raises(TypeError):
        FileUploadCoordinator(uploader).resolve({"brochure": "b.pdf"})


def test_requires_a_worker(uploader):
    with pytest.raises(ValueError):
        FileUploadCoordinator(uploader, max_workers=0)
