import os

# Must be set before storefront is imported: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///./test_app.db"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_mock_key"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["JWT_SECRET"] = "jwt_test_secret"
os.environ["EMAIL_HOST"] = ""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.database import Base, get_db
from storefront.main import app as fastapi_app
from storefront.models import User, Vinyl

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
JWT_SECRET = os.environ["JWT_SECRET"]


def create_access_token(user, secret=JWT_SECRET, expires_in_seconds=3600):
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
    }
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def user(db):
    u = User(email="testuser@example.com", first_name="Test", last_name="User")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def other_user(db):
    u = User(email="someone.else@example.com")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def vinyl(db):
    v = Vinyl(
        name="Dark Side of the Moon",
        author_name="Pink Floyd",
        description="Classic album",
        price=Decimal("29.99"),
        image_url="https://example.com/image.jpg",
    )
    db.add(v)
    db.commit()
    db.refresh(v)
    return v


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user, JWT_SECRET)}"}


@pytest.fixture
def client():
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db

    with TestClient(fastapi_app) as c:
        yield c

    fastapi_app.dependency_overrides.clear()
