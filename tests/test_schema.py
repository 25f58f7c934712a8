import pytest

from vendor_console.errors import UnknownSectionError
from vendor_console.wizard.normalizer import FieldSpec
from vendor_console.wizard.schema import (
    ConditionalRule,
    SectionDefinition,
    SectionSchemaRegistry,
    WizardDefinition,
)
from vendor_console.wizard.values import ExistingFile, NewFile


@pytest.fixture
def registry(demo_definition):
    return SectionSchemaRegistry(demo_definition)


def test_missing_required_field(registry):
    result = registry.validate("company", {"companyName": "  "})
    assert not result.valid
    assert result.field_errors == {"companyName": "Company name is required."}


def test_valid_section_has_no_errors(registry):
    result = registry.validate("company", {"companyName": "Acme"})
    assert result.valid
    assert dict(result.field_errors) == {}


def test_conditional_requirement(registry):
    result = registry.validate("declaration", {"controlledItems": "yes", "endUseMarket": []})
    assert result.field_errors == {"endUseMarket": "End-use market is required."}

    assert registry.validate("declaration", {"controlledItems": "yes", "endUseMarket": ["Military"]}).valid
    assert registry.validate("declaration", {"controlledItems": "no", "endUseMarket": []}).valid


def test_rule_matches_list_membership():
    rule = ConditionalRule("licenseTypes", "mod", ("modLicense",))
    assert rule.applies({"licenseTypes": ["itar", "mod"]})
    assert not rule.applies({"licenseTypes": ["itar"]})
    assert not rule.applies({})


def test_format_rules_are_checked_per_field(registry):
    result = registry.validate("company", {
        "companyName": "A company name that is far too long",
        "vatCertificate": NewFile("vat.exe", b"MZ"),
    })
    assert set(result.field_errors) == {"companyName", "vatCertificate"}
    assert "longer than 20" in result.field_errors["companyName"]
    assert result.field_errors["vatCertificate"] == "File must be one of: pdf, png."


def test_existing_files_skip_extension_checks(registry):
    result = registry.validate("company", {
        "companyName": "Acme",
        "vatCertificate": ExistingFile("https://cdn.test/legacy-upload"),
    })
    assert result.valid


def test_validate_has_no_side_effects(registry):
    values = {"companyName": "", "foundedYear": "2001"}
    registry.validate("company", values)
    assert values == {"companyName": "", "foundedYear": "2001"}


def test_result_is_immutable(registry):
    result = registry.validate("company", {})
    with pytest.raises(TypeError):
        result.field_errors["companyName"] = "changed"


def test_unknown_section(registry):
    with pytest.raises(UnknownSectionError):
        registry.validate("billing", {})


def test_missing_required_across_sections(registry):
    assert registry.missing_required({}) == {
        "company": ["companyName"],
        "declaration": ["controlledItems"],
    }
    assert registry.missing_required({
        "companyName": "Acme", "controlledItems": "yes",
    }) == {"declaration": ["endUseMarket"]}


def test_definition_rejects_undeclared_fields():
    with pytest.raises(ValueError):
        WizardDefinition("w", "W", "thing", [
            SectionDefinition("a", "A", ("name", "ghost")),
        ], [FieldSpec("name")])


def test_definition_rejects_duplicate_sections():
    with pytest.raises(ValueError):
        WizardDefinition("w", "W", "thing", [
            SectionDefinition("a", "A", ("name",)),
            SectionDefinition("a", "Again", ("name",)),
        ], [FieldSpec("name")])


def test_definition_navigation(demo_definition):
    assert demo_definition.first_section.id == "company"
    assert demo_definition.next_section("company").id == "declaration"
    assert demo_definition.next_section("preferences") is None
    assert demo_definition.file_field_names("company") == ["vatCertificate", "tradeLicense"]
    assert demo_definition.to_dict()["sections"][1]["conditional_requirements"] == [
        {"when_field": "controlledItems", "when_equals": "yes", "then_require_fields": ["endUseMarket"]}
    ]
