"""Format rules for every wizard section.

Each section has a plain WTForms ``Form`` whose fields carry the validators
for that section. Forms are built from in-memory client values
(``Form(data=...)``), never from request form data; whether a field is
required is decided by the section definition, not by these forms.
"""
from wtforms import BooleanField, Field, Form, StringField, TextAreaField
from wtforms.validators import URL, AnyOf, Length, NumberRange, Regexp, ValidationError

from vendor_console.wizard.normalizer import ABSENT, coerce_number, decode_value
from vendor_console.wizard.validators import Accepted, FileExtensions, SubsetOf, ValidCalendarDate
from vendor_console.wizard.values import CompositeDate

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
DOCUMENT_EXTENSIONS = ["pdf", "jpg", "jpeg", "png"]
IMAGE_EXTENSIONS = ["jpg", "jpeg", "png", "webp"]
YES_NO = ["yes", "no"]

ENTITY_TYPES = [
    "manufacturer", "distributor", "trader", "government_entity",
    "oem_dealer", "integrator", "service_provider", "other",
]
END_USE_MARKETS = ["Civilian", "Military", "Law Enforcement", "Government", "Export"]
LICENSE_TYPES = ["mod", "eocn", "itar", "local", "none"]
CURRENCIES = ["AED", "USD", "EUR"]
REGISTER_AS = ["verified-supplier"]


class ListField(Field):
    def process_data(self, value):
        if value is None:
            self.data = []
        elif isinstance(value, (list, tuple)):
            self.data = list(value)
        else:
            self.data = []
            raise ValueError(self.gettext("Not a valid list."))


class NumberField(Field):
    """Accepts ints, floats and numeric strings; anything else is a coercion error."""

    def process_data(self, value):
        if value is None or value == "":
            self.data = None
            return
        number = coerce_number(value)
        if number is ABSENT:
            self.data = None
            raise ValueError(self.gettext("Not a valid number."))
        self.data = number


class WholeNumberField(NumberField):
    def process_data(self, value):
        super().process_data(value)
        if isinstance(self.data, float):
            if not self.data.is_integer():
                self.data = None
                raise ValueError(self.gettext("Not a valid whole number."))
            self.data = int(self.data)


class StrictBooleanField(BooleanField):
    """Checkbox fed from JSON; only true and false count."""

    def process_data(self, value):
        if value is None or isinstance(value, bool):
            self.data = bool(value)
        else:
            self.data = False
            raise ValueError(self.gettext("Not a valid boolean."))


class CompositeDateField(Field):
    def process_data(self, value):
        try:
            self.data = CompositeDate.coerce(value)
        except (TypeError, ValueError):
            self.data = None
            raise ValueError(self.gettext("Not a valid date value."))


class FileRefField(Field):
    pass


class StructuredField(Field):
    def process_data(self, value):
        self.data = decode_value(value) if isinstance(value, str) else value


# -- vendor onboarding --------------------------------------------------------

class CompanyInformationForm(Form):
    countryOfRegistration = StringField("Country of registration", validators=[Length(max=100)])
    registeredCompanyName = StringField("Registered company name", validators=[Length(max=255)])
    tradeBrandName = StringField("Trade / brand name", validators=[Length(max=255)])
    yearOfEstablishment = WholeNumberField(
        "Year of establishment", validators=[NumberRange(min=1800, max=2100)]
    )
    legalEntityId = StringField("Legal entity ID / CR no", validators=[Length(max=100)])
    issueDate = CompositeDateField("Issue date", validators=[ValidCalendarDate(not_after_today=True)])
    expiryDate = CompositeDateField("Expiry date", validators=[ValidCalendarDate()])
    cityOfficeAddress = TextAreaField("City & office address", validators=[Length(max=500)])
    officialWebsite = StringField(
        "Official website", validators=[URL(message="Please enter a valid URL.")]
    )
    entityType = StringField("Entity type", validators=[AnyOf(ENTITY_TYPES)])
    dunsNumber = StringField(
        "DUNS number", validators=[Regexp(r"^\d{9}$", message="DUNS number must be 9 digits.")]
    )
    taxVatNumber = StringField("Tax / VAT number", validators=[Length(max=50)])
    taxIssueDate = CompositeDateField("Tax issuing date", validators=[ValidCalendarDate(not_after_today=True)])
    taxExpiryDate = CompositeDateField("Tax expiry date", validators=[ValidCalendarDate()])
    vatCertificate = FileRefField("VAT certificate", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])

    def validate_expiryDate(self, field):
        _not_before(self.issueDate, field, "Expiry date must be after the issue date.")

    def validate_taxExpiryDate(self, field):
        _not_before(self.taxIssueDate, field, "Tax expiry date must be after the issuing date.")


def _not_before(start_field, end_field, message):
    start, end = start_field.data, end_field.data
    if not (isinstance(start, CompositeDate) and isinstance(end, CompositeDate)):
        return
    if not (start.is_complete() and end.is_complete()):
        return
    try:
        start_date, end_date = start.to_date(), end.to_date()
    except ValueError:
        # impossible calendar dates are reported by ValidCalendarDate
        return
    if end_date <= start_date:
        raise ValidationError(message)


class ContactPersonForm(Form):
    contactFullName = StringField("Full name", validators=[Length(max=255)])
    contactJobTitle = StringField("Job title", validators=[Length(max=255)])
    contactWorkEmail = StringField(
        "Work email", validators=[Regexp(EMAIL_PATTERN, message="Please enter a valid email address.")]
    )
    contactMobileCountryCode = StringField(
        "Country code", validators=[Regexp(r"^\+\d{1,4}$", message="Use a dialling code such as +971.")]
    )
    contactMobile = StringField(
        "Mobile / WhatsApp number",
        validators=[Regexp(r"^[0-9 ()-]{6,20}$", message="Please enter a valid phone number.")],
    )
    contactIdDocument = FileRefField("Passport or ID", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    termsAccepted = StrictBooleanField(
        "I confirm the information is accurate",
        validators=[Accepted("You must confirm the information is accurate.")],
    )


class DeclarationForm(Form):
    natureOfBusiness = ListField("Nature of business")
    controlledItems = StringField("Controlled items", validators=[AnyOf(YES_NO)])
    controlledDualUseItems = TextAreaField("Controlled / dual-use items", validators=[Length(max=2000)])
    endUseMarket = ListField("End-use market", validators=[SubsetOf(END_USE_MARKETS)])
    licenseTypes = ListField("Licenses held", validators=[SubsetOf(LICENSE_TYPES)])
    operatingCountries = ListField("Operating countries")
    onSanctionsList = StringField("On a sanctions list", validators=[AnyOf(YES_NO)])
    businessLicense = FileRefField("Business license", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    companyProfile = FileRefField("Company profile", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    modLicense = FileRefField("MOD license", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    eocnApproval = FileRefField("EOCN approval", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    itarRegistration = FileRefField("ITAR registration", validators=[FileExtensions(DOCUMENT_EXTENSIONS)])
    localAuthorityApproval = FileRefField(
        "Local authority approval", validators=[FileExtensions(DOCUMENT_EXTENSIONS)]
    )
    complianceTermsAccepted = StrictBooleanField(
        "I agree to the compliance terms",
        validators=[Accepted("You must agree to the compliance terms.")],
    )

    def validate_licenseTypes(self, field):
        if "none" in (field.data or []) and len(field.data) > 1:
            raise ValidationError("'None' cannot be combined with other licenses.")


class AccountPreferencesForm(Form):
    sellingCategories = ListField("Selling categories")
    registerAs = StringField("Register as", validators=[AnyOf(REGISTER_AS)])
    preferredCurrency = StringField("Preferred currency", validators=[AnyOf(CURRENCIES)])
    sponsorContent = StringField("Sponsored content", validators=[AnyOf(YES_NO)])


# -- product listing ----------------------------------------------------------

class BasicInfoForm(Form):
    name = StringField("Product name", validators=[Length(min=2, max=255)])
    sku = StringField(
        "SKU", validators=[Regexp(r"^[A-Za-z0-9-]{3,64}$", message="SKU may only contain letters, digits and dashes.")]
    )
    mainCategoryId = WholeNumberField("Main category", validators=[NumberRange(min=1)])
    categoryId = WholeNumberField("Category", validators=[NumberRange(min=1)])
    subCategoryId = WholeNumberField("Sub-category", validators=[NumberRange(min=1)])
    brandId = WholeNumberField("Brand", validators=[NumberRange(min=1)])
    model = StringField("Model", validators=[Length(max=255)])
    year = WholeNumberField("Year", validators=[NumberRange(min=1900, max=2100)])
    countryOfOrigin = StringField("Country of origin", validators=[Length(max=100)])
    controlledItemType = StringField("Controlled item type", validators=[Length(max=255)])
    vehicleCompatibility = ListField("Vehicle compatibility")
    description = TextAreaField("Description", validators=[Length(max=5000)])


class TechnicalForm(Form):
    dimensionLength = NumberField("Length", validators=[NumberRange(min=0)])
    dimensionWidth = NumberField("Width", validators=[NumberRange(min=0)])
    dimensionHeight = NumberField("Height", validators=[NumberRange(min=0)])
    dimensionUnit = StringField("Dimension unit", validators=[AnyOf(["mm", "cm", "m", "in"])])
    weightValue = NumberField("Weight", validators=[NumberRange(min=0)])
    weightUnit = StringField("Weight unit", validators=[AnyOf(["g", "kg", "lb"])])
    materials = ListField("Materials")
    features = ListField("Features")
    technicalDescription = TextAreaField("Technical description", validators=[Length(max=5000)])


class PricingForm(Form):
    basePrice = NumberField("Base price", validators=[NumberRange(min=0)])
    shippingCharge = NumberField("Shipping charge", validators=[NumberRange(min=0)])
    packingCharge = NumberField("Packing charge", validators=[NumberRange(min=0)])
    currency = StringField("Currency", validators=[AnyOf(CURRENCIES)])
    minOrderQuantity = WholeNumberField("Minimum order quantity", validators=[NumberRange(min=1)])
    pricingTerms = ListField("Pricing terms")
    productionLeadTime = WholeNumberField("Production lead time (days)", validators=[NumberRange(min=0)])
    readyStockAvailable = StringField("Ready stock available", validators=[AnyOf(YES_NO)])
    stock = WholeNumberField("Stock", validators=[NumberRange(min=0)])
    pricingTiers = StructuredField("Pricing tiers")
    individualProductPricing = StructuredField("Individual product pricing")

    def validate_pricingTiers(self, field):
        tiers = field.data
        if not isinstance(tiers, list):
            raise ValidationError("Pricing tiers must be a list.")
        for tier in tiers:
            if not isinstance(tier, dict):
                raise ValidationError("Each pricing tier needs a minimum quantity and a price.")
            quantity = coerce_number(tier.get("min_quantity"))
            price = coerce_number(tier.get("price"))
            if quantity is ABSENT or price is ABSENT:
                raise ValidationError("Each pricing tier needs a minimum quantity and a price.")
            if quantity < 1 or price < 0:
                raise ValidationError("Pricing tier quantities start at 1 and prices cannot be negative.")


class UploadsForm(Form):
    coverImage = FileRefField("Cover image", validators=[FileExtensions(IMAGE_EXTENSIONS)])
    brochure = FileRefField("Brochure", validators=[FileExtensions(["pdf"])])


class ProductDeclarationsForm(Form):
    requiresExportLicense = StringField("Requires export license", validators=[AnyOf(YES_NO)])
    manufacturingSource = StringField(
        "Manufacturing source", validators=[AnyOf(["in_house", "third_party"])]
    )
    manufacturingSourceName = StringField("Manufacturer name", validators=[Length(max=255)])
    hasWarranty = StringField("Warranty", validators=[AnyOf(YES_NO)])
    warrantyDuration = WholeNumberField("Warranty duration", validators=[NumberRange(min=1)])
    warrantyDurationUnit = StringField(
        "Warranty duration unit", validators=[AnyOf(["days", "months", "years"])]
    )
    warrantyTerms = TextAreaField("Warranty terms", validators=[Length(max=2000)])
    complianceConfirmed = StrictBooleanField(
        "I confirm this product complies with applicable regulations",
        validators=[Accepted("You must confirm compliance.")],
    )
    supplierSignature = StringField("Supplier signature", validators=[Length(max=255)])
    signatureDate = CompositeDateField("Signature date", validators=[ValidCalendarDate()])
