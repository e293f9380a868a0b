"""
Administrative blueprint for the Barangay Records API.

This module covers the records that configure certificate issuance:
barangay officials (with their uploaded signature images) and the singleton
barangay profile.  It also exposes the audit trail, which is restricted to
the roles listed in ``ADMIN_ROLES``.
"""
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_

from .extensions import db
from .forms import BarangayProfileForm, OfficialForm
from .helpers import (
    Identity,
    log_action,
    roles_required,
    save_uploaded_image,
    token_required,
    update_by_id,
    validated_form,
)
from .models import BarangayProfile, Official, TransactionLog, User

admin_bp = Blueprint("admin", __name__, url_prefix="/api")

SIGNATURE_SUBFOLDER = "signatures"
AUDIT_LOG_DEFAULT_LIMIT = 100
AUDIT_LOG_MAX_LIMIT = 500


def _official_values(form: OfficialForm, current_signature: str | None = None) -> dict:
    """Column values for an official; keeps `current_signature` unless replaced or cleared."""
    values = form.cleaned("full_name", "position")
    values["order_no"] = form.order_no.data or 0
    values["is_captain"] = bool(form.is_captain.data)
    values["is_secretary"] = bool(form.is_secretary.data)

    uploaded = save_uploaded_image(form.signature.data, SIGNATURE_SUBFOLDER)
    if uploaded:
        values["signature_path"] = uploaded
    elif form.clear_signature.data:
        values["signature_path"] = None
    else:
        values["signature_path"] = current_signature
    return values


@admin_bp.get("/officials")
def list_officials():
    officials = Official.query.order_by(
        Official.order_no.asc(), Official.position.asc(), Official.full_name.asc()
    ).all()
    return jsonify([o.to_dict() for o in officials])


@admin_bp.post("/officials")
@token_required
def create_official(identity: Identity):
    """Create an official from multipart form data with an optional signature image."""
    form = validated_form(OfficialForm)
    official = Official(**_official_values(form))
    db.session.add(official)
    db.session.commit()
    log_action(
        identity,
        f"Created official #{official.id} ({official.full_name}, {official.position})",
        entity_type="official",
        entity_id=official.id,
        meta={"signature_path": official.signature_path},
    )
    return jsonify(official.to_dict()), 201


@admin_bp.put("/officials/<int:official_id>")
@token_required
def update_official(official_id: int, identity: Identity):
    """Replace an official's fields.

    Without a new ``signature`` file the stored path is kept, unless
    ``clear_signature`` is truthy.
    """
    form = validated_form(OfficialForm)
    existing = db.session.get(Official, official_id)
    if existing is None:
        # Nothing to update; do not store the uploaded file either.
        return jsonify(None)
    official = update_by_id(Official, official_id, _official_values(form, existing.signature_path))
    log_action(identity, f"Updated official #{official_id}", entity_type="official", entity_id=official_id)
    return jsonify(official.to_dict() if official else None)


@admin_bp.delete("/officials/<int:official_id>")
@token_required
def delete_official(official_id: int, identity: Identity):
    if Official.query.filter_by(id=official_id).delete(synchronize_session=False):
        log_action(identity, f"Deleted official #{official_id}", entity_type="official", entity_id=official_id)
    db.session.commit()
    return jsonify({"message": "Official deleted successfully"})


@admin_bp.get("/barangay-profile")
def get_barangay_profile():
    """Return the barangay profile, or null when none has been saved."""
    profile = BarangayProfile.query.order_by(BarangayProfile.id.asc()).first()
    return jsonify(profile.to_dict() if profile else None)


@admin_bp.put("/barangay-profile")
@token_required
def save_barangay_profile(identity: Identity):
    """Upsert the singleton profile row."""
    form = validated_form(BarangayProfileForm)
    values = form.cleaned("barangay_name", "municipality", "province", "place_issued")

    profile = BarangayProfile.query.order_by(BarangayProfile.id.asc()).first()
    if profile is None:
        profile = BarangayProfile(**values)
        db.session.add(profile)
    else:
        for key, value in values.items():
            setattr(profile, key, value)
    db.session.commit()

    log_action(
        identity,
        f"Updated barangay profile ({profile.barangay_name})",
        entity_type="barangay_profile",
        entity_id=profile.id,
    )
    return jsonify(profile.to_dict())


@admin_bp.get("/audit-logs")
@token_required
@roles_required()
def audit_logs(identity: Identity):
    """Recent audit log entries, newest first.

    Query parameters: ``q`` filters on the action text or username,
    ``limit`` caps the number of rows (default 100, at most 500).
    """
    q = (request.args.get("q") or "").strip()
    limit = request.args.get("limit", AUDIT_LOG_DEFAULT_LIMIT, type=int)
    limit = max(1, min(limit, AUDIT_LOG_MAX_LIMIT))

    query = db.session.query(TransactionLog, User.username).outerjoin(User, User.id == TransactionLog.user_id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(TransactionLog.action.ilike(like), User.username.ilike(like)))
    rows = query.order_by(TransactionLog.timestamp.desc(), TransactionLog.id.desc()).limit(limit).all()

    current_app.logger.debug("Audit log read by user #%s (%d rows)", identity.id, len(rows))
    return jsonify([{**log.to_dict(), "username": username} for log, username in rows])
