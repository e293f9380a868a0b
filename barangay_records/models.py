"""
SQLAlchemy models defining the database schema for the Barangay Records API.

Each model corresponds to a table in the PostgreSQL database.  Rows are
hard-deleted; there is no soft-delete or versioning.  Foreign keys on the
join tables and incidents are declared for the ORM but the application does
not check that referenced rows exist before inserting.

Every model exposes `to_dict()`, the JSON shape returned by the API.
"""
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db
from .time_utils import utcnow


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    """
    A staff account.  Only used for authentication; the role is a free-form
    label (``Staff`` by default) carried inside issued tokens.
    """

    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(50), nullable=False, default="Staff")
    created_at = db.Column(db.DateTime, default=utcnow)

    def set_password(self, password: str) -> None:
        """Hash and store the user's password.

        Args:
            password: The plaintext password to hash and store.
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check a plaintext password against the stored hash."""
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
        }

    def __repr__(self):
        return f"<User {self.username}>"


class Resident(db.Model):
    """
    A resident of the barangay.  Names are not unique; two residents may
    share every field except the surrogate key.
    """

    __tablename__ = "residents"
    __table_args__ = (db.Index("ix_residents_last_name", "last_name", "first_name"),)
    id = db.Column(db.Integer, primary_key=True)
    last_name = db.Column(db.String(100), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    suffix = db.Column(db.String(20), nullable=True)
    sex = db.Column(db.String(10), nullable=False)
    birthdate = db.Column(db.Date, nullable=True)
    civil_status = db.Column(db.String(50), nullable=True)
    contact_no = db.Column(db.String(50), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "last_name": self.last_name,
            "first_name": self.first_name,
            "middle_name": self.middle_name,
            "suffix": self.suffix,
            "sex": self.sex,
            "birthdate": _iso(self.birthdate),
            "civil_status": self.civil_status,
            "contact_no": self.contact_no,
            "address": self.address,
        }

    def __repr__(self):
        return f"<Resident {self.last_name}, {self.first_name}>"


class Household(db.Model):
    """A household (name, address and purok/zone label) with member rows."""

    __tablename__ = "households"
    id = db.Column(db.Integer, primary_key=True)
    household_name = db.Column(db.String(150), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    purok = db.Column(db.String(50), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "household_name": self.household_name,
            "address": self.address,
            "purok": self.purok,
        }

    def __repr__(self):
        return f"<Household {self.household_name}>"


class HouseholdMember(db.Model):
    """Join row linking a resident to a household with a relation-to-head label."""

    __tablename__ = "household_members"
    __table_args__ = (db.Index("ix_household_members_household_id", "household_id"),)
    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey("households.id"), nullable=False)
    resident_id = db.Column(db.Integer, db.ForeignKey("residents.id"), nullable=False)
    relation_to_head = db.Column(db.String(50), nullable=True)

    resident = db.relationship("Resident")

    def to_dict(self) -> dict:
        resident = self.resident
        return {
            "id": self.id,
            "household_id": self.household_id,
            "resident_id": self.resident_id,
            "first_name": resident.first_name if resident else None,
            "last_name": resident.last_name if resident else None,
            "relation_to_head": self.relation_to_head,
        }

    def __repr__(self):
        return f"<HouseholdMember {self.id} household={self.household_id} resident={self.resident_id}>"


class Incident(db.Model):
    """
    A blotter/complaint record.  Complainant and respondent are optional
    references to residents.
    """

    __tablename__ = "incidents"
    __table_args__ = (db.Index("ix_incidents_incident_date", "incident_date"),)
    id = db.Column(db.Integer, primary_key=True)
    incident_date = db.Column(db.Date, nullable=False)
    incident_type = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    complainant_id = db.Column(db.Integer, db.ForeignKey("residents.id"), nullable=True)
    respondent_id = db.Column(db.Integer, db.ForeignKey("residents.id"), nullable=True)
    status = db.Column(db.String(30), nullable=False, default="Open")

    complainant = db.relationship("Resident", foreign_keys=[complainant_id])
    respondent = db.relationship("Resident", foreign_keys=[respondent_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "incident_date": _iso(self.incident_date),
            "incident_type": self.incident_type,
            "location": self.location,
            "description": self.description,
            "complainant_id": self.complainant_id,
            "respondent_id": self.respondent_id,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Incident {self.id} {self.incident_type}>"


class Service(db.Model):
    """A barangay service/program (e.g. relief distribution) with beneficiaries."""

    __tablename__ = "services"
    id = db.Column(db.Integer, primary_key=True)
    service_name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    service_date = db.Column(db.Date, nullable=True)
    location = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_name": self.service_name,
            "description": self.description,
            "service_date": _iso(self.service_date),
            "location": self.location,
        }

    def __repr__(self):
        return f"<Service {self.service_name}>"


class ServiceBeneficiary(db.Model):
    """Join row linking a resident to a service, with free-text notes."""

    __tablename__ = "service_beneficiaries"
    __table_args__ = (db.Index("ix_service_beneficiaries_service_id", "service_id"),)
    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)
    resident_id = db.Column(db.Integer, db.ForeignKey("residents.id"), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    resident = db.relationship("Resident")

    def to_dict(self) -> dict:
        resident = self.resident
        return {
            "id": self.id,
            "service_id": self.service_id,
            "resident_id": self.resident_id,
            "first_name": resident.first_name if resident else None,
            "last_name": resident.last_name if resident else None,
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<ServiceBeneficiary {self.id} service={self.service_id} resident={self.resident_id}>"


class Official(db.Model):
    """
    A barangay official.  `is_captain` / `is_secretary` mark the signatories
    used on certificates; more than one row may carry a flag, in which case
    the first official in list order wins.
    """

    __tablename__ = "officials"
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    position = db.Column(db.String(100), nullable=False)
    order_no = db.Column(db.Integer, nullable=False, default=0)
    is_captain = db.Column(db.Boolean, nullable=False, default=False, server_default="false")
    is_secretary = db.Column(db.Boolean, nullable=False, default=False, server_default="false")
    # Public path, e.g. /uploads/signatures/1700000000000-sig.png
    signature_path = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "position": self.position,
            "order_no": self.order_no,
            "is_captain": bool(self.is_captain),
            "is_secretary": bool(self.is_secretary),
            "signature_path": self.signature_path,
        }

    def __repr__(self):
        return f"<Official {self.full_name} ({self.position})>"


class BarangayProfile(db.Model):
    """Singleton row describing the issuing barangay.  Written by upsert."""

    __tablename__ = "barangay_profile"
    id = db.Column(db.Integer, primary_key=True)
    barangay_name = db.Column(db.String(150), nullable=False)
    municipality = db.Column(db.String(150), nullable=False)
    province = db.Column(db.String(150), nullable=False)
    place_issued = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barangay_name": self.barangay_name,
            "municipality": self.municipality,
            "province": self.province,
            "place_issued": self.place_issued,
        }

    def __repr__(self):
        return f"<BarangayProfile {self.barangay_name}>"


class TransactionLog(db.Model):
    """
    Audit trail.  Records mutating actions performed through the API along
    with the acting user id taken from the bearer token.
    """

    __tablename__ = "transaction_logs"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(255), nullable=False)
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "ip_address": self.ip_address,
            "meta": self.meta,
            "timestamp": _iso(self.timestamp),
        }

    def __repr__(self):
        return f"<TransactionLog {self.id} - {self.action}>"
