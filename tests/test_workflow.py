import io
import os

from PIL import Image
from pypdf import PdfReader

from barangay_records.models import TransactionLog


def _login(client, username, password):
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


def test_residency_certificate_workflow(client, app):
    resp = client.post(
        "/api/auth/register",
        json={"username": "clerk", "password": "Clerk123!", "full_name": "Ana Reyes"},
    )
    assert resp.status_code == 201
    headers = _login(client, "clerk", "Clerk123!")

    resp = client.post(
        "/api/residents",
        json={"last_name": "Santos", "first_name": "Juan", "sex": "Male"},
        headers=headers,
    )
    assert resp.status_code == 201
    resident_id = resp.get_json()["id"]

    sig = io.BytesIO()
    Image.new("RGB", (240, 80), color=(10, 10, 10)).save(sig, format="PNG")
    sig.seek(0)
    resp = client.post(
        "/api/officials",
        data={
            "full_name": "Maria Cruz",
            "position": "Punong Barangay",
            "is_captain": "1",
            "signature": (sig, "captain.png"),
        },
        content_type="multipart/form-data",
        headers=headers,
    )
    assert resp.status_code == 201

    resp = client.post(
        "/api/certificates/preview",
        json={"resident_id": resident_id, "certificate_type": "residency", "purpose": "scholarship application"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()["body"]
    assert "JUAN SANTOS" in body
    assert body.endswith("for scholarship application.")

    resp = client.post(
        "/api/certificates",
        json={
            "resident_id": resident_id,
            "certificate_type": "residency",
            "purpose": "scholarship application",
            "or_number": "0001",
            "amount": "50.00",
        },
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert "certificate_residency_juan_santos.pdf" in resp.headers["Content-Disposition"]

    reader = PdfReader(io.BytesIO(resp.data))
    text = "\n".join(page.extract_text() for page in reader.pages)
    assert "JUAN SANTOS" in text
    assert "MARIA CRUZ" in text
    assert "OR No.: 0001 | Amount: PHP 50.00" in text
    assert len(reader.pages[0].images) == 1

    actions = [log.action for log in TransactionLog.query.order_by(TransactionLog.id).all()]
    assert actions[0] == "Logged in"
    assert actions[-1] == f"Generated Certificate of Residency for resident #{resident_id}"

    signatures = os.listdir(os.path.join(app.config["UPLOAD_FOLDER"], "signatures"))
    assert len(signatures) == 1


def test_deleting_missing_resident_reports_success(client, auth_headers):
    resp = client.delete("/api/residents/999999", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Resident deleted successfully"
