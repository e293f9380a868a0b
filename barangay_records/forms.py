"""
WTForms classes validating the request bodies of the Barangay Records API.

Each entity has an explicit input form.  Forms are fed from JSON bodies or
multipart form data (see `helpers.request_payload`), reject fields they do
not declare, and report missing required fields by name so that views can
answer with a single descriptive 400 message.
"""
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import BooleanField, DateField, IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, InputRequired, Length, Optional


REQUIRED = "required"

INCIDENT_STATUSES = ("Open", "Under Investigation", "Closed")
OFFICIAL_POSITIONS = (
    "Punong Barangay",
    "Barangay Kagawad",
    "Sangguniang Kabataan Chairperson",
    "Barangay Secretary",
    "Barangay Treasurer",
    "Barangay Clerk",
)

# "0"/"off"/"no" must read as False for multipart checkboxes sent as strings.
FALSE_VALUES = ("false", "False", "0", "off", "no", "")


class ApiForm(FlaskForm):
    """Base form for JSON/multipart API payloads.

    Fields listed in `read_only_fields` are values the API itself emits
    (ids, computed counts, joined names); clients echoing a whole row back
    may include them, so they are ignored rather than rejected.
    """

    class Meta:
        csrf = False

    read_only_fields: tuple = ("id",)

    def __init__(self, payload, **kwargs):
        self.payload_keys = set(payload.keys()) if payload is not None else set()
        super().__init__(formdata=payload, **kwargs)

    def validate(self, extra_validators=None):
        ok = super().validate(extra_validators=extra_validators)
        unknown = sorted(self.payload_keys - set(self._fields) - set(self.read_only_fields))
        if unknown:
            self.form_errors.append(f"Unknown field(s): {', '.join(unknown)}.")
            return False
        return ok

    def error_message(self) -> str:
        missing = [name for name, field in self._fields.items() if REQUIRED in field.errors]
        if missing:
            return f"Missing required field(s): {', '.join(missing)}."
        if self.form_errors:
            return self.form_errors[0]
        for name, field in self._fields.items():
            if field.errors:
                return f"{name}: {field.errors[0]}"
        return "Invalid request."

    def cleaned(self, *names: str) -> dict:
        """Return field values with strings stripped and empty strings as None."""
        names = names or tuple(self._fields)
        values = {}
        for name in names:
            value = self._fields[name].data
            if isinstance(value, str):
                value = value.strip() or None
            values[name] = value
        return values


class RegisterForm(ApiForm):
    username = StringField("Username", validators=[DataRequired(REQUIRED), Length(max=150)])
    password = StringField("Password", validators=[DataRequired(REQUIRED)])
    full_name = StringField("Full Name", validators=[DataRequired(REQUIRED), Length(max=255)])
    role = StringField("Role", validators=[Optional(), Length(max=50)])


class LoginForm(ApiForm):
    """Username/password login.  Both fields are required."""

    username = StringField("Username", validators=[DataRequired(REQUIRED)])
    password = StringField("Password", validators=[DataRequired(REQUIRED)])


class ResidentForm(ApiForm):
    last_name = StringField("Last Name", validators=[DataRequired(REQUIRED), Length(max=100)])
    first_name = StringField("First Name", validators=[DataRequired(REQUIRED), Length(max=100)])
    middle_name = StringField("Middle Name", validators=[Optional(), Length(max=100)])
    suffix = StringField("Suffix", validators=[Optional(), Length(max=20)])
    sex = StringField("Sex", validators=[DataRequired(REQUIRED), Length(max=10)])
    birthdate = DateField("Birthdate", validators=[Optional()])
    civil_status = StringField("Civil Status", validators=[Optional(), Length(max=50)])
    contact_no = StringField("Contact No.", validators=[Optional(), Length(max=50)])
    address = StringField("Address", validators=[Optional(), Length(max=255)])


class HouseholdForm(ApiForm):
    read_only_fields = ("id", "member_count")

    household_name = StringField("Household Name", validators=[DataRequired(REQUIRED), Length(max=150)])
    address = StringField("Address", validators=[DataRequired(REQUIRED), Length(max=255)])
    purok = StringField("Purok", validators=[Optional(), Length(max=50)])


class HouseholdMemberForm(ApiForm):
    read_only_fields = ("id", "household_id", "first_name", "last_name")

    resident_id = IntegerField("Resident", validators=[InputRequired(REQUIRED)])
    relation_to_head = StringField("Relation to Head", validators=[Optional(), Length(max=50)])


class MemberRelationForm(ApiForm):
    """Editing a membership only changes the relation label."""

    read_only_fields = ("id", "household_id", "resident_id", "first_name", "last_name")

    relation_to_head = StringField("Relation to Head", validators=[Optional(), Length(max=50)])


class IncidentForm(ApiForm):
    read_only_fields = (
        "id",
        "complainant_first_name",
        "complainant_last_name",
        "respondent_first_name",
        "respondent_last_name",
    )

    incident_date = DateField("Incident Date", validators=[InputRequired(REQUIRED)])
    incident_type = StringField("Incident Type", validators=[DataRequired(REQUIRED), Length(max=100)])
    location = StringField("Location", validators=[Optional(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])
    complainant_id = IntegerField("Complainant", validators=[Optional()])
    respondent_id = IntegerField("Respondent", validators=[Optional()])
    status = StringField(
        "Status",
        validators=[Optional(), AnyOf(INCIDENT_STATUSES, message="Status must be one of: Open, Under Investigation, Closed.")],
    )


class ServiceForm(ApiForm):
    read_only_fields = ("id", "beneficiary_count")

    service_name = StringField("Service Name", validators=[DataRequired(REQUIRED), Length(max=150)])
    description = TextAreaField("Description", validators=[Optional()])
    service_date = DateField("Service Date", validators=[Optional()])
    location = StringField("Location", validators=[Optional(), Length(max=255)])


class BeneficiaryForm(ApiForm):
    read_only_fields = ("id", "service_id", "first_name", "last_name")

    resident_id = IntegerField("Resident", validators=[InputRequired(REQUIRED)])
    notes = TextAreaField("Notes", validators=[Optional()])


class BeneficiaryNotesForm(ApiForm):
    read_only_fields = ("id", "service_id", "resident_id", "first_name", "last_name")

    notes = TextAreaField("Notes", validators=[Optional()])


class BarangayProfileForm(ApiForm):
    barangay_name = StringField("Barangay Name", validators=[DataRequired(REQUIRED), Length(max=150)])
    municipality = StringField("Municipality", validators=[DataRequired(REQUIRED), Length(max=150)])
    province = StringField("Province", validators=[DataRequired(REQUIRED), Length(max=150)])
    place_issued = StringField("Place of Issuance", validators=[Optional(), Length(max=255)])


class OfficialForm(ApiForm):
    """Multipart form for officials; `signature` is an optional image upload."""

    read_only_fields = ("id", "signature_path")

    full_name = StringField("Full Name", validators=[DataRequired(REQUIRED), Length(max=255)])
    position = StringField(
        "Position",
        validators=[DataRequired(REQUIRED), AnyOf(OFFICIAL_POSITIONS, message="Unknown position.")],
    )
    order_no = IntegerField("Order No.", validators=[Optional()])
    is_captain = BooleanField("Punong Barangay signatory", false_values=FALSE_VALUES)
    is_secretary = BooleanField("Secretary signatory", false_values=FALSE_VALUES)
    signature = FileField(
        "Signature",
        validators=[Optional(), FileAllowed(["png", "jpg", "jpeg"], "Signature must be a PNG or JPEG image.")],
    )
    clear_signature = BooleanField("Remove signature", false_values=FALSE_VALUES)


class CertificateForm(ApiForm):
    resident_id = IntegerField("Resident", validators=[InputRequired(REQUIRED)])
    certificate_type = StringField("Certificate Type", validators=[DataRequired(REQUIRED)])
    purpose = StringField("Purpose", validators=[Optional(), Length(max=255)])
    issue_date = DateField("Issue Date", validators=[Optional()])
    place_issued = StringField("Place of Issuance", validators=[Optional(), Length(max=255)])
    or_number = StringField("OR Number", validators=[Optional(), Length(max=50)])
    amount = StringField("Amount", validators=[Optional(), Length(max=50)])
    captain_name = StringField("Punong Barangay", validators=[Optional(), Length(max=255)])
    secretary_name = StringField("Barangay Secretary", validators=[Optional(), Length(max=255)])
