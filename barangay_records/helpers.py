"""
Utility functions for the Barangay Records API.

This module defines helpers that are used across multiple blueprints:
bearer-token issuance and verification, the `token_required` /
`roles_required` view decorators, request payload normalisation, audit
logging and signature uploads.  By centralizing these helpers here, we
avoid circular imports and keep route modules focused on view logic.
"""
from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import abort, current_app, g, has_request_context, request
from werkzeug.datastructures import CombinedMultiDict, MultiDict
from werkzeug.utils import secure_filename

from .extensions import db
from .models import TransactionLog


@dataclass(frozen=True)
class Identity:
    """Caller identity derived from a verified bearer token."""

    id: int
    username: str
    full_name: str
    role: str

    def to_dict(self) -> dict:
        return asdict(self)


def issue_token(user) -> str:
    """Sign a time-limited token embedding the user's identity claims."""
    now = datetime.now(timezone.utc)
    hours = int(current_app.config.get("JWT_EXPIRES_HOURS", 8))
    payload = {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_token(token: str) -> Identity:
    """Verify signature and expiry and return the embedded identity.

    Raises:
        jwt.InvalidTokenError: for bad signatures, expired or malformed tokens.
    """
    claims = jwt.decode(
        token,
        current_app.config["JWT_SECRET_KEY"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
    )
    try:
        return Identity(
            id=int(claims["id"]),
            username=claims["username"],
            full_name=claims.get("full_name") or "",
            role=claims.get("role") or "",
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("token is missing identity claims") from exc


def _token_from_header() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header:
        return None
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return header.strip() or None


def token_required(view_func):
    """Require a valid bearer token and pass the caller as ``identity=``.

    Usage:
        @main_bp.post("/residents")
        @token_required
        def create_resident(identity: Identity):
            ...
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = _token_from_header()
        if not token:
            abort(401, description="No token provided")
        try:
            identity = decode_token(token)
        except jwt.InvalidTokenError as exc:
            current_app.logger.info("Rejected bearer token: %s", exc)
            abort(401, description="Invalid or expired token")
        g.user_id = identity.id
        return view_func(*args, identity=identity, **kwargs)

    return wrapper


def roles_required(*roles: str):
    """Require the identity passed by `token_required` to hold one of the roles.

    Roles are compared case-insensitively.  When no roles are given, the
    comma-separated ``ADMIN_ROLES`` config value is used.

    Usage:
        @token_required
        @roles_required("Admin")
        def view(identity):
            ...
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, identity: Identity, **kwargs):
            allowed = roles or tuple(
                r.strip() for r in str(current_app.config.get("ADMIN_ROLES", "Admin")).split(",") if r.strip()
            )
            if identity.role.lower() not in {r.lower() for r in allowed}:
                abort(403, description="You do not have permission to perform this action.")
            return view_func(*args, identity=identity, **kwargs)

        return wrapper

    return decorator


def request_payload():
    """Return the request body as a MultiDict suitable for `ApiForm`.

    JSON objects are flattened to strings (``null`` becomes ``""``, booleans
    become ``"1"``/``"0"``) so JSON and multipart clients validate the same
    way.  Multipart uploads keep their files next to the form fields.
    """
    if request.is_json:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            abort(400, description="Request body must be a JSON object.")
        data = MultiDict()
        for key, value in body.items():
            if value is None:
                data.add(key, "")
            elif isinstance(value, bool):
                data.add(key, "1" if value else "0")
            else:
                data.add(key, str(value))
        return data
    if request.files:
        return CombinedMultiDict((request.files, request.form))
    return request.form


def validated_form(form_class):
    """Build `form_class` from the request body or abort with a 400 message."""
    form = form_class(request_payload())
    if not form.validate():
        abort(400, description=form.error_message())
    return form


def update_by_id(model, row_id: int, values: dict):
    """Overwrite a row by id and return the re-read row, or None if it does not exist.

    There is no existence check: updating a missing id is a silent no-op.
    """
    model.query.filter_by(id=row_id).update(values, synchronize_session=False)
    db.session.commit()
    return db.session.get(model, row_id)


def get_client_ip() -> str | None:
    """Best-effort client IP for audit logs."""
    if not has_request_context():
        return None
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.remote_addr


def log_action(
    identity: Identity | None,
    action: str,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    meta: dict | None = None,
) -> None:
    """Record an action in the transaction log.

    Args:
        identity: The caller performing the action (None for system actions).
        action: A description of the action performed.
    """
    ua = None
    if has_request_context() and request.user_agent:
        ua = (request.user_agent.string or "")[:255] or None

    db.session.add(
        TransactionLog(
            user_id=identity.id if identity else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            ip_address=get_client_ip(),
            user_agent=ua,
            meta=meta,
        )
    )
    db.session.commit()


ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg"}


def upload_root() -> str:
    return current_app.config.get(
        "UPLOAD_FOLDER", os.path.join(current_app.root_path, "static", "uploads")
    )


def save_uploaded_image(file_storage, subfolder: str) -> str | None:
    """Save an uploaded image under <UPLOAD_FOLDER>/<subfolder> and return its public path.

    The stored name is ``<epoch-millis>-<secure original name>``, so two
    uploads of the same file only collide within the same millisecond.

    Returns:
        Public path (e.g., '/uploads/signatures/1700000000000-sig.png') or
        None if no usable file was sent.
    """
    if not file_storage or not getattr(file_storage, "filename", ""):
        return None

    filename = secure_filename(file_storage.filename)
    if "." not in filename:
        return None
    base, ext = filename.rsplit(".", 1)
    ext = ext.lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        return None

    target_dir = os.path.join(upload_root(), subfolder)
    os.makedirs(target_dir, exist_ok=True)

    stored_name = f"{int(time.time() * 1000)}-{base}.{ext}"
    file_storage.save(os.path.join(target_dir, stored_name))
    return f"/uploads/{subfolder}/{stored_name}"


def resolve_upload_path(public_path: str | None) -> str | None:
    """Map a stored '/uploads/...' path back to an existing file on disk."""
    if not public_path:
        return None
    rel = str(public_path).strip().lstrip("/")
    if rel.startswith("uploads/"):
        rel = rel[len("uploads/"):]
    if not rel:
        return None
    root = os.path.abspath(upload_root())
    abs_path = os.path.abspath(os.path.join(root, rel))
    if not abs_path.startswith(root + os.sep) or not os.path.isfile(abs_path):
        return None
    return abs_path
