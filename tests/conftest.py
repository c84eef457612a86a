import os
import time
import uuid

import pytest

# Configure the app for an in-memory database before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMPLOYEE_COOKIE_SECURE"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("REDIS_HOST", None)

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from healthhub.database import Base, SessionLocal, engine  # noqa: E402
from healthhub.main import app  # noqa: E402
from healthhub.models import Profile, Professional, Wallet  # noqa: E402
from healthhub.models_staff import ProfessionalEmployee  # noqa: E402
from healthhub.rate_limiter import reset_rate_limits  # noqa: E402
from healthhub.security_utils import hash_pin  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_database():
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    return TestClient(app)


def make_token(user_id: str, email: str = "owner@example.com", full_name: str = "Test Owner") -> str:
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        "user_metadata": {"full_name": full_name},
    }
    return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def auth_headers(user_id: str, **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def employee_headers(token: str) -> dict:
    return {"X-Employee-Session": token}


def create_profile(db, full_name: str = "Test User", role: str = "patient") -> Profile:
    profile = Profile(
        id=str(uuid.uuid4()),
        email=f"{uuid.uuid4().hex[:8]}@example.com",
        full_name=full_name,
        role=role,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def create_professional(
    db,
    owner: Profile,
    type: str = "doctor",
    business_name: str = "Cabinet Test",
    practice_code: str = None,
    working_hours: dict = None,
    **fields,
) -> Professional:
    professional = Professional(
        auth_user_id=owner.id,
        business_name=business_name,
        type=type,
        practice_code=practice_code,
        working_hours=working_hours,
        unavailable_dates=[],
        wilaya="Alger",
        commune="Hydra",
        address_line1="12 Rue Didouche Mourad",
        **fields,
    )
    db.add(professional)
    db.commit()
    db.refresh(professional)
    return professional


def create_wallet(db, profile: Profile, balance: float) -> Wallet:
    wallet = Wallet(user_id=profile.id, balance=balance, currency="DZD")
    db.add(wallet)
    db.commit()
    db.refresh(wallet)
    return wallet


def create_employee(db, professional: Professional, username: str = "nadia", pin: str = "4821", role=None):
    employee = ProfessionalEmployee(
        professional_id=professional.id,
        role_id=role.id if role else None,
        username=username,
        pin_hash=hash_pin(pin),
        display_name=username.title(),
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def login_employee(client, practice_code: str, username: str, pin: str) -> str:
    """Log an employee in and return the session token, without keeping the cookie"""
    response = client.post(
        "/staff/login", json={"practiceCode": practice_code, "username": username, "pin": pin}
    )
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return response.json()["session_token"]
