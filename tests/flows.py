"""
HTTP flow helpers shared by the API tests.
"""
from httpx import AsyncClient


def student_payload(phone: str = "9876543210", email: str = "asha.rao@gat.edu.in", **overrides) -> dict:
    payload = {
        "fullName": "Asha Rao",
        "usn": "1GA21CS014",
        "fatherName": "Ravi Rao",
        "semester": "5",
        "year": "3",
        "department": "Computer Science",
        "email": email,
        "phone": phone,
        "password": "secret1",
        "confirmPassword": "secret1",
    }
    payload.update(overrides)
    return payload


def admin_payload(email: str = "registrar@gat.edu.in", **overrides) -> dict:
    payload = {
        "fullName": "Meera Iyer",
        "email": email,
        "phone": "9000000001",
        "password": "adminpass",
        "confirmPassword": "adminpass",
        "secretCode": "gat",
    }
    payload.update(overrides)
    return payload


def request_payload(**overrides) -> dict:
    payload = {
        "studentName": "Asha Rao",
        "usn": "1GA21CS014",
        "fatherName": "Ravi Rao",
        "semester": "5",
        "year": "3",
        "department": "Computer Science",
        "purpose": "loan application",
    }
    payload.update(overrides)
    return payload


async def verified_token(client: AsyncClient, phone: str) -> str:
    r = await client.post("/send-otp", json={"phone": phone})
    assert r.status_code == 200, r.text
    r = await client.post("/verify-otp", json={"phone": phone, "otp": r.json()["code"]})
    assert r.status_code == 200, r.text
    return r.json()["verificationToken"]


async def signup_student(client: AsyncClient, phone: str = "9876543210", email: str = "asha.rao@gat.edu.in") -> str:
    token = await verified_token(client, phone)
    r = await client.post(
        "/signup/student", json=student_payload(phone=phone, email=email, verificationToken=token)
    )
    assert r.status_code == 200, r.text
    return r.json()["userId"]


async def login_headers(client: AsyncClient, email: str, password: str, role: str) -> dict:
    r = await client.post("/auth/login", json={"email": email, "password": password, "role": role})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}
