"""Record routes.

This blueprint covers the day-to-day data entry API:

- Residents: list, create, update, delete, export, import
- Households and their members
- Incidents
- Services and their beneficiaries
- Certificates: preview and PDF download

List endpoints are public; every mutating endpoint requires a bearer token.
Updates and deletes do not check that the id exists: an update of a missing
row answers ``null`` and a delete of a missing row still reports success.

For officials, the barangay profile and the audit trail, see `admin.py`.
"""

from __future__ import annotations

import csv
import io
from datetime import date

from flask import Blueprint, abort, current_app, jsonify, request, send_file
from sqlalchemy import func, or_
from sqlalchemy.orm import aliased
from werkzeug.datastructures import MultiDict

from .certificates import (
    CAPTAIN_POSITION,
    CERTIFICATE_TYPES,
    SECRETARY_POSITION,
    build_full_name,
    certificate_title,
    find_signatory,
    generate_certificate_body,
)
from .extensions import db
from .forms import (
    BeneficiaryForm,
    BeneficiaryNotesForm,
    CertificateForm,
    HouseholdForm,
    HouseholdMemberForm,
    IncidentForm,
    MemberRelationForm,
    ResidentForm,
    ServiceForm,
)
from .helpers import Identity, log_action, resolve_upload_path, token_required, update_by_id, validated_form
from .models import (
    BarangayProfile,
    Household,
    HouseholdMember,
    Incident,
    Official,
    Resident,
    Service,
    ServiceBeneficiary,
)
from .pdf_utils import CertificateMeta, certificate_filename, issue_sentence, render_certificate_pdf


RESIDENT_COLUMNS = (
    "last_name",
    "first_name",
    "middle_name",
    "suffix",
    "sex",
    "birthdate",
    "civil_status",
    "contact_no",
    "address",
)

main_bp = Blueprint("main", __name__, url_prefix="/api")


def _deleted(entity: str) -> dict:
    return {"message": f"{entity} deleted successfully"}


# ---------------------------------------------------------------------------
# Residents
# ---------------------------------------------------------------------------


def _resident_query():
    query = Resident.query
    q = (request.args.get("q") or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Resident.first_name.ilike(like),
                Resident.last_name.ilike(like),
                Resident.middle_name.ilike(like),
                Resident.address.ilike(like),
            )
        )
    sex = (request.args.get("sex") or "").strip()
    if sex:
        query = query.filter(Resident.sex == sex)
    civil_status = (request.args.get("civil_status") or "").strip()
    if civil_status:
        query = query.filter(Resident.civil_status == civil_status)
    return query.order_by(Resident.last_name.asc(), Resident.first_name.asc(), Resident.id.asc())


@main_bp.get("/residents")
def list_residents():
    return jsonify([r.to_dict() for r in _resident_query().all()])


@main_bp.post("/residents")
@token_required
def create_resident(identity: Identity):
    form = validated_form(ResidentForm)
    resident = Resident(**form.cleaned(*RESIDENT_COLUMNS))
    db.session.add(resident)
    db.session.commit()
    log_action(
        identity,
        f"Created resident #{resident.id} ({resident.last_name}, {resident.first_name})",
        entity_type="resident",
        entity_id=resident.id,
    )
    return jsonify(resident.to_dict()), 201


@main_bp.put("/residents/<int:resident_id>")
@token_required
def update_resident(resident_id: int, identity: Identity):
    form = validated_form(ResidentForm)
    row = update_by_id(Resident, resident_id, form.cleaned(*RESIDENT_COLUMNS))
    if row:
        log_action(identity, f"Updated resident #{resident_id}", entity_type="resident", entity_id=resident_id)
    return jsonify(row.to_dict() if row else None)


@main_bp.delete("/residents/<int:resident_id>")
@token_required
def delete_resident(resident_id: int, identity: Identity):
    """Delete a resident together with their memberships and beneficiary rows.

    Incidents naming the resident keep their row; the reference is cleared.
    """
    HouseholdMember.query.filter_by(resident_id=resident_id).delete(synchronize_session=False)
    ServiceBeneficiary.query.filter_by(resident_id=resident_id).delete(synchronize_session=False)
    Incident.query.filter_by(complainant_id=resident_id).update({"complainant_id": None}, synchronize_session=False)
    Incident.query.filter_by(respondent_id=resident_id).update({"respondent_id": None}, synchronize_session=False)
    deleted = Resident.query.filter_by(id=resident_id).delete(synchronize_session=False)
    db.session.commit()
    if deleted:
        log_action(identity, f"Deleted resident #{resident_id}", entity_type="resident", entity_id=resident_id)
    return jsonify(_deleted("Resident"))


@main_bp.get("/residents/export/<string:fmt>")
def export_residents(fmt: str):
    """Export residents (same order and filters as the list) to CSV or XLSX."""
    fmt = (fmt or "").lower()
    headers = ["id", *RESIDENT_COLUMNS]
    rows = [r.to_dict() for r in _resident_query().all()]
    filename_base = f"residents_{date.today().isoformat()}"

    if fmt == "csv":
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=headers)
        writer.writeheader()
        for row in rows:
            writer.writerow({h: "" if row[h] is None else row[h] for h in headers})
        data = io.BytesIO(output.getvalue().encode("utf-8"))
        return send_file(data, mimetype="text/csv", as_attachment=True, download_name=f"{filename_base}.csv")

    if fmt == "xlsx":
        from openpyxl import Workbook

        wb = Workbook()
        ws = wb.active
        ws.title = "Residents"
        ws.append(headers)
        for row in rows:
            ws.append([row[h] for h in headers])
        bio = io.BytesIO()
        wb.save(bio)
        bio.seek(0)
        return send_file(
            bio,
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            as_attachment=True,
            download_name=f"{filename_base}.xlsx",
        )

    abort(400, description="Unsupported export format. Use csv or xlsx.")


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()[:10]
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


@main_bp.post("/residents/import")
@token_required
def import_residents(identity: Identity):
    """Create residents from an uploaded .xlsx sheet.

    Row 1 names the columns (same names as the JSON fields; unrecognised
    columns are ignored).  Each data row is validated like a POST body;
    valid rows are inserted together and invalid rows are reported.
    """
    from openpyxl import load_workbook

    upload = request.files.get("file")
    if not upload or not upload.filename:
        abort(400, description="Missing required field(s): file.")
    if not upload.filename.lower().endswith(".xlsx"):
        abort(400, description="Resident import expects an .xlsx file.")

    try:
        wb = load_workbook(upload.stream, read_only=True, data_only=True)
    except Exception as exc:
        current_app.logger.info("Rejected resident import %s: %s", upload.filename, exc)
        abort(400, description="Could not read the uploaded spreadsheet.")

    rows = wb.active.iter_rows(values_only=True)
    header = [_cell_text(h).lower() for h in next(rows, ())]

    created, errors = [], []
    for row_no, values in enumerate(rows, start=2):
        if not any(_cell_text(v) for v in values):
            continue
        payload = MultiDict(
            (key, _cell_text(value))
            for key, value in zip(header, values)
            if key in RESIDENT_COLUMNS
        )
        form = ResidentForm(payload)
        if not form.validate():
            errors.append({"row": row_no, "message": form.error_message()})
            continue
        resident = Resident(**form.cleaned(*RESIDENT_COLUMNS))
        db.session.add(resident)
        created.append(resident)
    wb.close()

    if not created:
        db.session.rollback()
        return jsonify({"created": 0, "errors": errors or [{"row": None, "message": "No resident rows found."}]}), 400

    db.session.commit()
    log_action(
        identity,
        f"Imported {len(created)} residents",
        entity_type="resident",
        meta={"filename": upload.filename, "created": len(created), "errors": len(errors)},
    )
    return jsonify({"created": len(created), "errors": errors}), 201


# ---------------------------------------------------------------------------
# Households
# ---------------------------------------------------------------------------


@main_bp.get("/households")
def list_households():
    member_count = func.count(HouseholdMember.id).label("member_count")
    query = (
        db.session.query(Household, member_count)
        .outerjoin(HouseholdMember, HouseholdMember.household_id == Household.id)
        .group_by(Household.id)
    )
    purok = (request.args.get("purok") or "").strip()
    if purok:
        query = query.filter(Household.purok == purok)
    rows = query.order_by(Household.household_name.asc(), Household.id.asc()).all()
    return jsonify([{**h.to_dict(), "member_count": int(count)} for h, count in rows])


@main_bp.post("/households")
@token_required
def create_household(identity: Identity):
    form = validated_form(HouseholdForm)
    household = Household(**form.cleaned("household_name", "address", "purok"))
    db.session.add(household)
    db.session.commit()
    log_action(identity, f"Created household #{household.id}", entity_type="household", entity_id=household.id)
    return jsonify(household.to_dict()), 201


@main_bp.put("/households/<int:household_id>")
@token_required
def update_household(household_id: int, identity: Identity):
    form = validated_form(HouseholdForm)
    row = update_by_id(Household, household_id, form.cleaned("household_name", "address", "purok"))
    if row:
        log_action(identity, f"Updated household #{household_id}", entity_type="household", entity_id=household_id)
    return jsonify(row.to_dict() if row else None)


@main_bp.delete("/households/<int:household_id>")
@token_required
def delete_household(household_id: int, identity: Identity):
    """Delete a household and its member rows in one transaction."""
    HouseholdMember.query.filter_by(household_id=household_id).delete(synchronize_session=False)
    deleted = Household.query.filter_by(id=household_id).delete(synchronize_session=False)
    db.session.commit()
    if deleted:
        log_action(identity, f"Deleted household #{household_id}", entity_type="household", entity_id=household_id)
    return jsonify(_deleted("Household"))


@main_bp.get("/households/<int:household_id>/members")
def list_household_members(household_id: int):
    members = (
        HouseholdMember.query.join(Resident, Resident.id == HouseholdMember.resident_id)
        .filter(HouseholdMember.household_id == household_id)
        .order_by(Resident.last_name.asc(), Resident.first_name.asc())
        .all()
    )
    return jsonify([m.to_dict() for m in members])


@main_bp.post("/households/<int:household_id>/members")
@token_required
def add_household_member(household_id: int, identity: Identity):
    form = validated_form(HouseholdMemberForm)
    member = HouseholdMember(household_id=household_id, **form.cleaned("resident_id", "relation_to_head"))
    db.session.add(member)
    db.session.commit()
    log_action(
        identity,
        f"Added resident #{member.resident_id} to household #{household_id}",
        entity_type="household",
        entity_id=household_id,
        meta={"member_id": member.id},
    )
    return jsonify(member.to_dict()), 201


@main_bp.put("/households/<int:household_id>/members/<int:member_id>")
@token_required
def update_household_member(household_id: int, member_id: int, identity: Identity):
    form = validated_form(MemberRelationForm)
    updated = HouseholdMember.query.filter_by(id=member_id, household_id=household_id).update(
        form.cleaned("relation_to_head"), synchronize_session=False
    )
    db.session.commit()
    if not updated:
        return jsonify(None)
    log_action(
        identity,
        f"Updated member #{member_id} of household #{household_id}",
        entity_type="household",
        entity_id=household_id,
    )
    return jsonify(db.session.get(HouseholdMember, member_id).to_dict())


def _remove_member(member_id: int, identity: Identity, household_id: int | None = None):
    query = HouseholdMember.query.filter_by(id=member_id)
    if household_id is not None:
        query = query.filter_by(household_id=household_id)
    if query.delete(synchronize_session=False):
        log_action(identity, f"Removed household member #{member_id}", entity_type="household", entity_id=household_id)
    db.session.commit()
    return jsonify(_deleted("Member"))


@main_bp.delete("/households/<int:household_id>/members/<int:member_id>")
@token_required
def delete_household_member(household_id: int, member_id: int, identity: Identity):
    return _remove_member(member_id, identity, household_id)


@main_bp.delete("/member/<int:member_id>")
@token_required
def delete_member(member_id: int, identity: Identity):
    return _remove_member(member_id, identity)


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------


INCIDENT_COLUMNS = (
    "incident_date",
    "incident_type",
    "location",
    "description",
    "complainant_id",
    "respondent_id",
    "status",
)


def _incident_values(form: IncidentForm) -> dict:
    values = form.cleaned(*INCIDENT_COLUMNS)
    values["status"] = values["status"] or "Open"
    return values


@main_bp.get("/incidents")
def list_incidents():
    complainant = aliased(Resident)
    respondent = aliased(Resident)
    query = (
        db.session.query(
            Incident,
            complainant.first_name,
            complainant.last_name,
            respondent.first_name,
            respondent.last_name,
        )
        .outerjoin(complainant, complainant.id == Incident.complainant_id)
        .outerjoin(respondent, respondent.id == Incident.respondent_id)
    )
    status = (request.args.get("status") or "").strip()
    if status:
        query = query.filter(Incident.status == status)
    incident_type = (request.args.get("incident_type") or "").strip()
    if incident_type:
        query = query.filter(Incident.incident_type == incident_type)

    rows = query.order_by(Incident.incident_date.desc(), Incident.id.desc()).all()
    return jsonify(
        [
            {
                **incident.to_dict(),
                "complainant_first_name": c_first,
                "complainant_last_name": c_last,
                "respondent_first_name": r_first,
                "respondent_last_name": r_last,
            }
            for incident, c_first, c_last, r_first, r_last in rows
        ]
    )


@main_bp.post("/incidents")
@token_required
def create_incident(identity: Identity):
    form = validated_form(IncidentForm)
    incident = Incident(**_incident_values(form))
    db.session.add(incident)
    db.session.commit()
    log_action(
        identity,
        f"Recorded incident #{incident.id} ({incident.incident_type})",
        entity_type="incident",
        entity_id=incident.id,
    )
    return jsonify(incident.to_dict()), 201


@main_bp.put("/incidents/<int:incident_id>")
@token_required
def update_incident(incident_id: int, identity: Identity):
    form = validated_form(IncidentForm)
    row = update_by_id(Incident, incident_id, _incident_values(form))
    if row:
        log_action(identity, f"Updated incident #{incident_id}", entity_type="incident", entity_id=incident_id)
    return jsonify(row.to_dict() if row else None)


@main_bp.delete("/incidents/<int:incident_id>")
@token_required
def delete_incident(incident_id: int, identity: Identity):
    if Incident.query.filter_by(id=incident_id).delete(synchronize_session=False):
        log_action(identity, f"Deleted incident #{incident_id}", entity_type="incident", entity_id=incident_id)
    db.session.commit()
    return jsonify(_deleted("Incident"))


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


SERVICE_COLUMNS = ("service_name", "description", "service_date", "location")


@main_bp.get("/services")
def list_services():
    beneficiary_count = func.count(ServiceBeneficiary.id).label("beneficiary_count")
    rows = (
        db.session.query(Service, beneficiary_count)
        .outerjoin(ServiceBeneficiary, ServiceBeneficiary.service_id == Service.id)
        .group_by(Service.id)
        .order_by(Service.service_date.desc(), Service.service_name.asc(), Service.id.asc())
        .all()
    )
    return jsonify([{**s.to_dict(), "beneficiary_count": int(count)} for s, count in rows])


@main_bp.post("/services")
@token_required
def create_service(identity: Identity):
    form = validated_form(ServiceForm)
    service = Service(**form.cleaned(*SERVICE_COLUMNS))
    db.session.add(service)
    db.session.commit()
    log_action(identity, f"Created service #{service.id} ({service.service_name})", entity_type="service", entity_id=service.id)
    return jsonify(service.to_dict()), 201


@main_bp.put("/services/<int:service_id>")
@token_required
def update_service(service_id: int, identity: Identity):
    form = validated_form(ServiceForm)
    row = update_by_id(Service, service_id, form.cleaned(*SERVICE_COLUMNS))
    if row:
        log_action(identity, f"Updated service #{service_id}", entity_type="service", entity_id=service_id)
    return jsonify(row.to_dict() if row else None)


@main_bp.delete("/services/<int:service_id>")
@token_required
def delete_service(service_id: int, identity: Identity):
    """Delete a service and its beneficiary rows in one transaction."""
    ServiceBeneficiary.query.filter_by(service_id=service_id).delete(synchronize_session=False)
    deleted = Service.query.filter_by(id=service_id).delete(synchronize_session=False)
    db.session.commit()
    if deleted:
        log_action(identity, f"Deleted service #{service_id}", entity_type="service", entity_id=service_id)
    return jsonify(_deleted("Service"))


@main_bp.get("/services/<int:service_id>/beneficiaries")
def list_beneficiaries(service_id: int):
    beneficiaries = (
        ServiceBeneficiary.query.join(Resident, Resident.id == ServiceBeneficiary.resident_id)
        .filter(ServiceBeneficiary.service_id == service_id)
        .order_by(Resident.last_name.asc(), Resident.first_name.asc())
        .all()
    )
    return jsonify([b.to_dict() for b in beneficiaries])


@main_bp.post("/services/<int:service_id>/beneficiaries")
@token_required
def add_beneficiary(service_id: int, identity: Identity):
    form = validated_form(BeneficiaryForm)
    values = form.cleaned("resident_id", "notes")
    existing = ServiceBeneficiary.query.filter_by(service_id=service_id, resident_id=values["resident_id"]).first()
    if existing:
        abort(400, description="This resident is already a beneficiary for this service.")

    beneficiary = ServiceBeneficiary(service_id=service_id, **values)
    db.session.add(beneficiary)
    db.session.commit()
    log_action(
        identity,
        f"Added resident #{beneficiary.resident_id} to service #{service_id}",
        entity_type="service",
        entity_id=service_id,
        meta={"beneficiary_id": beneficiary.id},
    )
    return jsonify(beneficiary.to_dict()), 201


@main_bp.put("/services/<int:service_id>/beneficiaries/<int:beneficiary_id>")
@token_required
def update_beneficiary(service_id: int, beneficiary_id: int, identity: Identity):
    form = validated_form(BeneficiaryNotesForm)
    updated = ServiceBeneficiary.query.filter_by(id=beneficiary_id, service_id=service_id).update(
        form.cleaned("notes"), synchronize_session=False
    )
    db.session.commit()
    if not updated:
        return jsonify(None)
    log_action(identity, f"Updated beneficiary #{beneficiary_id}", entity_type="service", entity_id=service_id)
    return jsonify(db.session.get(ServiceBeneficiary, beneficiary_id).to_dict())


def _remove_beneficiary(beneficiary_id: int, identity: Identity, service_id: int | None = None):
    query = ServiceBeneficiary.query.filter_by(id=beneficiary_id)
    if service_id is not None:
        query = query.filter_by(service_id=service_id)
    if query.delete(synchronize_session=False):
        log_action(identity, f"Removed beneficiary #{beneficiary_id}", entity_type="service", entity_id=service_id)
    db.session.commit()
    return jsonify(_deleted("Beneficiary"))


@main_bp.delete("/services/<int:service_id>/beneficiaries/<int:beneficiary_id>")
@token_required
def delete_service_beneficiary(service_id: int, beneficiary_id: int, identity: Identity):
    return _remove_beneficiary(beneficiary_id, identity, service_id)


@main_bp.delete("/beneficiaries/<int:beneficiary_id>")
@token_required
def delete_beneficiary(beneficiary_id: int, identity: Identity):
    return _remove_beneficiary(beneficiary_id, identity)


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def _locality(profile: BarangayProfile | None) -> dict:
    cfg = current_app.config
    if profile is None:
        return {
            "barangay_name": cfg.get("DEFAULT_BARANGAY_NAME", ""),
            "municipality": cfg.get("DEFAULT_MUNICIPALITY", ""),
            "province": cfg.get("DEFAULT_PROVINCE", ""),
            "place_issued": cfg.get("DEFAULT_PLACE_ISSUED", ""),
        }
    return {
        "barangay_name": profile.barangay_name,
        "municipality": profile.municipality,
        "province": profile.province,
        "place_issued": profile.place_issued or cfg.get("DEFAULT_PLACE_ISSUED", ""),
    }


def _prepare_certificate(form: CertificateForm):
    """Compose resident, profile and officials into (resident, body, meta, filename)."""
    values = form.cleaned()
    certificate_type = values["certificate_type"]

    resident = db.session.get(Resident, values["resident_id"])
    if resident is None:
        abort(404, description="Resident not found.")

    locality = _locality(BarangayProfile.query.order_by(BarangayProfile.id.asc()).first())
    body = generate_certificate_body(
        resident,
        certificate_type,
        values["purpose"],
        locality["barangay_name"],
        locality["municipality"],
        locality["province"],
    )
    if not body:
        abort(400, description=f"Unknown certificate type: {certificate_type}.")

    officials = Official.query.order_by(Official.order_no.asc(), Official.position.asc(), Official.full_name.asc()).all()
    captain = find_signatory(officials, "is_captain", CAPTAIN_POSITION)
    secretary = find_signatory(officials, "is_secretary", SECRETARY_POSITION)

    display_name = build_full_name(resident)
    meta = CertificateMeta(
        province=locality["province"],
        municipality=locality["municipality"],
        barangay_name=locality["barangay_name"],
        certificate_title=certificate_title(certificate_type),
        issue_date=values["issue_date"] or date.today(),
        place_issued=values["place_issued"] or locality["place_issued"],
        or_number=values["or_number"],
        amount=values["amount"],
        captain_name=values["captain_name"] or (captain.full_name if captain else ""),
        secretary_name=values["secretary_name"] or (secretary.full_name if secretary else ""),
        resident_display_name=display_name,
        captain_signature=resolve_upload_path(captain.signature_path) if captain and not values["captain_name"] else None,
        secretary_signature=(
            resolve_upload_path(secretary.signature_path) if secretary and not values["secretary_name"] else None
        ),
    )
    return resident, body, meta, certificate_filename(certificate_type, display_name)


@main_bp.get("/certificates/types")
def certificate_types():
    return jsonify([{"value": value, "label": label} for value, label in CERTIFICATE_TYPES.items()])


@main_bp.post("/certificates/preview")
@token_required
def preview_certificate(identity: Identity):
    """Return the certificate text and layout values without rendering a PDF."""
    form = validated_form(CertificateForm)
    resident, body, meta, filename = _prepare_certificate(form)
    return jsonify(
        {
            "resident_id": resident.id,
            "certificate_type": form.certificate_type.data.strip(),
            "title": meta.certificate_title,
            "body": body,
            "issue_sentence": issue_sentence(meta),
            "issue_date": meta.issue_date.isoformat(),
            "captain_name": meta.captain_name,
            "secretary_name": meta.secretary_name,
            "filename": filename,
        }
    )


@main_bp.post("/certificates")
@token_required
def generate_certificate(identity: Identity):
    """Render the certificate PDF and return it as a download."""
    form = validated_form(CertificateForm)
    resident, body, meta, filename = _prepare_certificate(form)
    pdf_bytes = render_certificate_pdf(
        body,
        meta,
        letterhead_path=current_app.config.get("CERTIFICATE_LETTERHEAD_PDF") or None,
    )
    log_action(
        identity,
        f"Generated {meta.certificate_title} for resident #{resident.id}",
        entity_type="resident",
        entity_id=resident.id,
        meta={
            "certificate_type": form.certificate_type.data.strip(),
            "purpose": form.purpose.data or None,
            "or_number": meta.or_number,
        },
    )
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=filename,
    )
