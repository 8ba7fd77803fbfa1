import os
import tempfile

# Point the app at a throwaway data dir before anything imports storda
_DATA_DIR = tempfile.mkdtemp()
os.environ["STORDA_DATA_DIR"] = _DATA_DIR
os.environ["STORDA_DB_PATH"] = os.path.join(_DATA_DIR, "test.db")
os.environ["STORDA_JWT_SECRET"] = "TEST_JWT_SECRET_CHANGE_ME"
os.environ["STORDA_SWEEP_ENABLED"] = "false"
os.environ["STORDA_BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from storda.database import engine
from storda.main import app
from storda.models.account import Account
from storda.schemas.device import DeviceRegisterRequest
from storda.schemas.transfer import TransferInitiateRequest
from storda.services import auth_service, device_service, verification_service
from storda.services.blacklist import LocalBlacklist
from storda.utils.rate_limit import pin_limiter

PIN = "123456"
PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    pin_limiter.reset()
    verification_service.set_registry(LocalBlacklist())
    yield


@pytest.fixture()
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


# --- Service-level helpers ---

@pytest.fixture()
def make_account(session):
    def _make(email: str, phone: str | None = None, nin: str | None = None) -> Account:
        result = auth_service.signup(
            email=email,
            password=PASSWORD,
            full_name=email.split("@")[0].title(),
            pin=PIN,
            phone=phone,
            nin=nin,
            session=session,
        )
        return session.get(Account, result["account_id"])
    return _make


@pytest.fixture()
def owner(make_account):
    return make_account("owner@test.com")


@pytest.fixture()
def recipient(make_account):
    return make_account("user@test.com", phone="+2348005551234")


def device_input(imei: str = "123456789012345", **kwargs) -> DeviceRegisterRequest:
    data = {"brand": "Samsung", "model": "Galaxy S23", "imei": imei}
    data.update(kwargs)
    return DeviceRegisterRequest(**data)


def transfer_input(device_id: str, **kwargs) -> TransferInitiateRequest:
    data = {
        "device_id": device_id,
        "recipient_contact": "user@test.com",
        "recipient_name": "Test User",
        "require_id": True,
        "recipient_nin": "12345678901",
        "reason": "Sold",
        "pin": PIN,
    }
    data.update(kwargs)
    return TransferInitiateRequest(**data)


@pytest.fixture()
def verified_device(session, owner):
    return device_service.register(owner, device_input(has_receipt=True), session)


# --- API helpers ---

def api_signup(client: TestClient, email: str, phone: str | None = None) -> dict:
    r = client.post("/api/v1/auth/signup", json={
        "email": email,
        "password": PASSWORD,
        "full_name": email.split("@")[0].title(),
        "pin": PIN,
        "phone": phone,
    })
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}
