from datetime import date

import pytest

from barangay_records.app import create_app
from barangay_records.config import TestingConfig
from barangay_records.extensions import db
from barangay_records.helpers import issue_token
from barangay_records.models import Official, Resident, User


@pytest.fixture
def app(tmp_path):
    db_path = tmp_path / "test.sqlite"
    upload_dir = tmp_path / "uploads"

    class TestConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_path}"
        JWT_SECRET_KEY = "test-secret"
        MAIL_SUPPRESS_SEND = True
        AUTO_CREATE_DB = True
        UPLOAD_FOLDER = str(upload_dir)
        CERTIFICATE_LETTERHEAD_PDF = ""
        LOG_JSON = False
        ERROR_REPORT_EMAIL = ""
        BACKUP_DIR = str(tmp_path / "backups")

    app = create_app(TestConfig)
    return app


@pytest.fixture(autouse=True)
def _setup_db(app):
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    with app.app_context():
        yield db.session


@pytest.fixture
def make_user(db_session):
    def _make_user(username, password="Secret123!", role="Staff", full_name=None):
        user = User(username=username, full_name=full_name or username.title(), role=role)
        user.set_password(password)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers(make_user):
    """Bearer headers for a freshly created user of the given role."""

    def _auth_headers(role="Staff", username=None):
        user = make_user(username or f"{role.lower()}_user", role=role)
        return {"Authorization": f"Bearer {issue_token(user)}"}

    return _auth_headers


@pytest.fixture
def make_resident(db_session):
    def _make_resident(
        first_name="Juan",
        last_name="Santos",
        middle_name=None,
        suffix=None,
        sex="Male",
        birthdate=date(1990, 1, 1),
        address="Purok 1, Catmon",
        civil_status="Single",
    ):
        resident = Resident(
            first_name=first_name,
            last_name=last_name,
            middle_name=middle_name,
            suffix=suffix,
            sex=sex,
            birthdate=birthdate,
            address=address,
            civil_status=civil_status,
        )
        db_session.add(resident)
        db_session.commit()
        return resident

    return _make_resident


@pytest.fixture
def make_official(db_session):
    def _make_official(
        full_name="Maria Cruz",
        position="Punong Barangay",
        order_no=1,
        is_captain=False,
        is_secretary=False,
        signature_path=None,
    ):
        official = Official(
            full_name=full_name,
            position=position,
            order_no=order_no,
            is_captain=is_captain,
            is_secretary=is_secretary,
            signature_path=signature_path,
        )
        db_session.add(official)
        db_session.commit()
        return official

    return _make_official
