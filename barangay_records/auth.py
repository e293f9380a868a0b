"""
Authentication blueprint for the Barangay Records API.

Registration stores a salted password hash; login verifies it and issues a
signed, time-limited bearer token carrying the caller's identity claims.
There is no server-side session: a token stays valid until it expires, and
logging out simply means the client discards it.
"""
from flask import Blueprint, abort, current_app, jsonify

from .extensions import db
from .forms import LoginForm, RegisterForm
from .helpers import Identity, issue_token, log_action, request_payload, token_required
from .models import User

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

INVALID_LOGIN = "Invalid username or password"


@auth_bp.post("/register")
def register():
    """Create a user account and return its summary."""
    form = RegisterForm(request_payload())
    if not form.validate():
        abort(400, description=form.error_message())

    username = form.username.data.strip()
    if User.query.filter_by(username=username).first():
        abort(400, description="Username already taken.")

    user = User(
        username=username,
        full_name=form.full_name.data.strip(),
        role=(form.role.data or "").strip() or current_app.config.get("DEFAULT_USER_ROLE", "Staff"),
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Registered user #%s (%s)", user.id, user.username)
    return jsonify(user.to_dict()), 201


@auth_bp.post("/login")
def login():
    """Verify credentials and issue a bearer token.

    Unknown usernames and wrong passwords produce the same 401 so the
    response does not reveal which usernames exist.
    """
    form = LoginForm(request_payload())
    if not form.validate():
        abort(400, description=form.error_message())

    user = User.query.filter_by(username=form.username.data.strip()).first()
    if not user or not user.check_password(form.password.data):
        abort(401, description=INVALID_LOGIN)

    token = issue_token(user)
    identity = Identity(id=user.id, username=user.username, full_name=user.full_name, role=user.role)
    log_action(identity, "Logged in", entity_type="user", entity_id=user.id)
    return jsonify({"token": token, "user": identity.to_dict()})


@auth_bp.get("/me")
@token_required
def me(identity: Identity):
    """Return the identity claims of the presented token."""
    return jsonify(identity.to_dict())
