"""The wizards offered by the console.

Static definitions, the same way for every session: a field table mapping
client names to the server representation, and the ordered sections.
"""
import secrets
import string
from typing import Dict

from vendor_console.wizard import wizard_forms as forms
from vendor_console.wizard.normalizer import FieldKind as K
from vendor_console.wizard.normalizer import FieldSpec as F
from vendor_console.wizard.schema import ConditionalRule, SectionDefinition, WizardDefinition

SKU_ALPHABET = string.ascii_uppercase + string.digits


def generate_sku() -> str:
    return "SKU-" + "".join(secrets.choice(SKU_ALPHABET) for _ in range(6))


VENDOR_ONBOARDING = WizardDefinition(
    name="vendor-onboarding",
    title="Vendor onboarding",
    entity_kind="vendor_profile",
    fields=[
        # company information
        F("countryOfRegistration", "country_of_registration", label="Country of registration"),
        F("registeredCompanyName", "registered_company_name", label="Registered company name"),
        F("tradeBrandName", "trade_brand_name", label="Trade / brand name"),
        F("yearOfEstablishment", "year_of_establishment", K.NUMBER, label="Year of establishment"),
        F("legalEntityId", "legal_entity_id", label="Legal entity ID / CR no"),
        F("issueDate", "legal_entity_issue_date", K.DATE, label="Issue date"),
        F("expiryDate", "legal_entity_expiry_date", K.DATE, label="Expiry date"),
        F("cityOfficeAddress", "city_office_address", label="City & office address"),
        F("officialWebsite", "official_website", label="Official website"),
        F("entityType", "entity_type", label="Entity type"),
        F("dunsNumber", "duns_number", label="DUNS number"),
        F("taxVatNumber", "tax_vat_number", label="Tax / VAT number"),
        F("taxIssueDate", "tax_issuing_date", K.DATE, label="Tax issuing date"),
        F("taxExpiryDate", "tax_expiry_date", K.DATE, label="Tax expiry date"),
        F("vatCertificate", "vat_certificate_url", K.FILE, label="VAT certificate",
          upload_label="VENDOR_VAT_CERTIFICATE"),
        # contact person
        F("contactFullName", "contact_full_name", label="Full name"),
        F("contactJobTitle", "contact_job_title", label="Job title"),
        F("contactWorkEmail", "contact_work_email", label="Work email"),
        F("contactMobileCountryCode", "contact_mobile_country_code", label="Country code"),
        F("contactMobile", "contact_mobile", label="Mobile / WhatsApp number"),
        F("contactIdDocument", "contact_id_document_url", K.FILE, label="Passport or ID",
          upload_label="VENDOR_CONTACT_ID_DOCUMENT"),
        F("termsAccepted", "terms_accepted", K.BOOLEAN, label="Accuracy confirmation"),
        # declaration
        F("natureOfBusiness", "nature_of_business", K.LIST, label="Nature of business"),
        F("controlledItems", "controlled_items", K.YES_NO, label="Controlled items"),
        F("controlledDualUseItems", "controlled_dual_use_items", label="Controlled / dual-use items"),
        F("endUseMarket", "end_use_markets", K.LIST, label="End-use market"),
        F("licenseTypes", "license_types", K.LIST, label="Licenses held"),
        F("operatingCountries", "operating_countries", K.LIST, label="Operating countries"),
        F("onSanctionsList", "is_on_sanctions_list", K.YES_NO, label="Sanctions list"),
        F("businessLicense", "business_license_url", K.FILE, label="Business license",
          upload_label="VENDOR_BUSINESS_LICENSE"),
        F("companyProfile", "company_profile_url", K.FILE, label="Company profile",
          upload_label="VENDOR_COMPANY_PROFILE"),
        F("modLicense", "mod_license_url", K.FILE, label="MOD license",
          upload_label="VENDOR_MOD_LICENSE"),
        F("eocnApproval", "eocn_approval_url", K.FILE, label="EOCN approval",
          upload_label="VENDOR_EOCN_APPROVAL"),
        F("itarRegistration", "itar_registration_url", K.FILE, label="ITAR registration",
          upload_label="VENDOR_ITAR_REGISTRATION"),
        F("localAuthorityApproval", "local_authority_approval_url", K.FILE,
          label="Local authority approval", upload_label="VENDOR_LOCAL_AUTHORITY_APPROVAL"),
        F("complianceTermsAccepted", "compliance_terms_accepted", K.BOOLEAN, label="Compliance terms"),
        # account preferences
        F("sellingCategories", "selling_categories", K.LIST, label="Selling categories"),
        F("registerAs", "register_as", label="Register as"),
        F("preferredCurrency", "preferred_currency", label="Preferred currency"),
        F("sponsorContent", "sponsor_content", K.YES_NO, label="Sponsored content"),
    ],
    sections=[
        SectionDefinition(
            id="company-information",
            display_name="Company Information",
            field_names=(
                "countryOfRegistration", "registeredCompanyName", "tradeBrandName",
                "yearOfEstablishment", "legalEntityId", "issueDate", "expiryDate",
                "cityOfficeAddress", "officialWebsite", "entityType", "dunsNumber",
                "taxVatNumber", "taxIssueDate", "taxExpiryDate", "vatCertificate",
            ),
            required_field_names=(
                "countryOfRegistration", "registeredCompanyName", "yearOfEstablishment",
                "legalEntityId", "issueDate", "expiryDate", "cityOfficeAddress",
                "entityType", "taxVatNumber", "vatCertificate",
            ),
            form_class=forms.CompanyInformationForm,
            defaults={"countryOfRegistration": "United Arab Emirates"},
        ),
        SectionDefinition(
            id="contact-person",
            display_name="Contact Person",
            field_names=(
                "contactFullName", "contactJobTitle", "contactWorkEmail",
                "contactMobileCountryCode", "contactMobile", "contactIdDocument", "termsAccepted",
            ),
            required_field_names=(
                "contactFullName", "contactWorkEmail", "contactMobileCountryCode",
                "contactMobile", "termsAccepted",
            ),
            form_class=forms.ContactPersonForm,
            defaults={"contactMobileCountryCode": "+971", "termsAccepted": False},
        ),
        SectionDefinition(
            id="declaration",
            display_name="Declaration",
            field_names=(
                "natureOfBusiness", "controlledItems", "controlledDualUseItems", "endUseMarket",
                "licenseTypes", "operatingCountries", "onSanctionsList", "businessLicense",
                "companyProfile", "modLicense", "eocnApproval", "itarRegistration",
                "localAuthorityApproval", "complianceTermsAccepted",
            ),
            required_field_names=(
                "natureOfBusiness", "controlledItems", "licenseTypes", "operatingCountries",
                "onSanctionsList", "businessLicense", "complianceTermsAccepted",
            ),
            conditional_requirements=(
                ConditionalRule("controlledItems", "yes", ("endUseMarket", "controlledDualUseItems")),
                ConditionalRule("licenseTypes", "mod", ("modLicense",),
                                "Upload your MOD license."),
                ConditionalRule("licenseTypes", "eocn", ("eocnApproval",),
                                "Upload your EOCN approval."),
                ConditionalRule("licenseTypes", "itar", ("itarRegistration",),
                                "Upload your ITAR registration."),
                ConditionalRule("licenseTypes", "local", ("localAuthorityApproval",),
                                "Upload the local authority approval."),
            ),
            form_class=forms.DeclarationForm,
            # deselecting every option must clear the stored list
            send_empty_lists=True,
            defaults={"complianceTermsAccepted": False},
        ),
        SectionDefinition(
            id="account-preferences",
            display_name="Account Preferences",
            field_names=("sellingCategories", "registerAs", "preferredCurrency", "sponsorContent"),
            required_field_names=("sellingCategories", "registerAs", "preferredCurrency", "sponsorContent"),
            form_class=forms.AccountPreferencesForm,
            defaults={"registerAs": "verified-supplier", "preferredCurrency": "AED", "sponsorContent": "no"},
        ),
    ],
)


PRODUCT_LISTING = WizardDefinition(
    name="product-listing",
    title="Product listing",
    entity_kind="product",
    fields=[
        F("name", label="Product name"),
        F("sku", label="SKU"),
        F("mainCategoryId", "main_category_id", K.NUMBER, label="Main category"),
        F("categoryId", "category_id", K.NUMBER, label="Category"),
        F("subCategoryId", "sub_category_id", K.NUMBER, label="Sub-category"),
        F("brandId", "brand_id", K.NUMBER, label="Brand"),
        F("model", label="Model"),
        F("year", kind=K.NUMBER, label="Year"),
        F("countryOfOrigin", "country_of_origin", label="Country of origin"),
        F("controlledItemType", "controlled_item_type", label="Controlled item type"),
        F("vehicleCompatibility", "vehicle_compatibility", K.LIST, label="Vehicle compatibility"),
        F("description", label="Description"),
        F("dimensionLength", "dimension_length", K.NUMBER, label="Length"),
        F("dimensionWidth", "dimension_width", K.NUMBER, label="Width"),
        F("dimensionHeight", "dimension_height", K.NUMBER, label="Height"),
        F("dimensionUnit", "dimension_unit", label="Dimension unit"),
        F("weightValue", "weight_value", K.NUMBER, label="Weight"),
        F("weightUnit", "weight_unit", label="Weight unit"),
        F("materials", kind=K.LIST, label="Materials"),
        F("features", kind=K.LIST, label="Features"),
        F("technicalDescription", "technical_description", label="Technical description"),
        F("basePrice", "base_price", K.NUMBER, label="Base price"),
        F("shippingCharge", "shipping_charge", K.NUMBER, label="Shipping charge"),
        F("packingCharge", "packing_charge", K.NUMBER, label="Packing charge"),
        F("currency", label="Currency"),
        F("minOrderQuantity", "min_order_quantity", K.NUMBER, label="Minimum order quantity"),
        F("pricingTerms", "pricing_terms", K.LIST, label="Pricing terms"),
        F("productionLeadTime", "production_lead_time", K.NUMBER, label="Production lead time"),
        F("readyStockAvailable", "ready_stock_available", K.YES_NO, label="Ready stock available"),
        F("stock", kind=K.NUMBER, label="Stock"),
        F("pricingTiers", "pricing_tiers", K.STRUCTURED, label="Pricing tiers"),
        F("individualProductPricing", "individual_product_pricing", K.STRUCTURED,
          label="Individual product pricing"),
        F("coverImage", "image", K.FILE, label="Cover image", upload_label="PRODUCT_IMAGE"),
        F("brochure", "brochure_url", K.FILE, label="Brochure", upload_label="PRODUCT_BROCHURE"),
        F("requiresExportLicense", "requires_export_license", K.YES_NO, label="Export license"),
        F("manufacturingSource", "manufacturing_source", label="Manufacturing source"),
        F("manufacturingSourceName", "manufacturing_source_name", label="Manufacturer name"),
        F("hasWarranty", "has_warranty", K.YES_NO, label="Warranty"),
        F("warrantyDuration", "warranty_duration", K.NUMBER, label="Warranty duration"),
        F("warrantyDurationUnit", "warranty_duration_unit", label="Warranty duration unit"),
        F("warrantyTerms", "warranty_terms", label="Warranty terms"),
        F("complianceConfirmed", "compliance_confirmed", K.BOOLEAN, label="Compliance confirmation"),
        F("supplierSignature", "supplier_signature", label="Supplier signature"),
        F("signatureDate", "submission_date", K.DATE, label="Signature date"),
    ],
    sections=[
        SectionDefinition(
            id="basic-info",
            display_name="Basic Information",
            field_names=(
                "name", "sku", "mainCategoryId", "categoryId", "subCategoryId", "brandId",
                "model", "year", "countryOfOrigin", "controlledItemType",
                "vehicleCompatibility", "description",
            ),
            required_field_names=("name", "mainCategoryId", "description"),
            form_class=forms.BasicInfoForm,
            defaults={"sku": generate_sku},
        ),
        SectionDefinition(
            id="technical",
            display_name="Technical Specifications",
            field_names=(
                "dimensionLength", "dimensionWidth", "dimensionHeight", "dimensionUnit",
                "weightValue", "weightUnit", "materials", "features", "technicalDescription",
            ),
            form_class=forms.TechnicalForm,
            defaults={"dimensionUnit": "cm", "weightUnit": "kg"},
        ),
        SectionDefinition(
            id="pricing",
            display_name="Pricing & Availability",
            field_names=(
                "basePrice", "shippingCharge", "packingCharge", "currency", "minOrderQuantity",
                "pricingTerms", "productionLeadTime", "readyStockAvailable", "stock",
                "pricingTiers", "individualProductPricing",
            ),
            required_field_names=("basePrice",),
            conditional_requirements=(
                ConditionalRule("readyStockAvailable", "yes", ("stock",),
                                "Enter the quantity in stock."),
            ),
            form_class=forms.PricingForm,
            defaults={"currency": "AED"},
        ),
        SectionDefinition(
            id="uploads",
            display_name="Uploads & Media",
            field_names=("coverImage", "brochure"),
            required_field_names=("coverImage",),
            form_class=forms.UploadsForm,
        ),
        SectionDefinition(
            id="declarations",
            display_name="Declarations",
            field_names=(
                "requiresExportLicense", "manufacturingSource", "manufacturingSourceName",
                "hasWarranty", "warrantyDuration", "warrantyDurationUnit", "warrantyTerms",
                "complianceConfirmed", "supplierSignature", "signatureDate",
            ),
            required_field_names=("complianceConfirmed", "supplierSignature", "signatureDate"),
            conditional_requirements=(
                ConditionalRule("manufacturingSource", "third_party", ("manufacturingSourceName",)),
                ConditionalRule("hasWarranty", "yes", ("warrantyDuration", "warrantyDurationUnit")),
            ),
            form_class=forms.ProductDeclarationsForm,
            defaults={"complianceConfirmed": False},
        ),
    ],
)


WIZARDS: Dict[str, WizardDefinition] = {
    VENDOR_ONBOARDING.name: VENDOR_ONBOARDING,
    PRODUCT_LISTING.name: PRODUCT_LISTING,
}


def get_definition(name: str) -> WizardDefinition:
    try:
        return WIZARDS[name]
    except KeyError:
        raise KeyError(f"Unknown wizard: {name}") from None
