import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from unittest.mock import patch, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import Base, get_db, json_serializer
from app.core.security import create_access_token
from app.models.user import User, UserRole

# In-memory SQLite database for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    json_serializer=json_serializer,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Fresh database session for every test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def mock_storage():
    """Stands in for the remote object store in every module that deletes files"""
    storage = MagicMock(return_value=[])
    with patch("app.utils.folder_utils.delete_assets", storage):
        with patch("app.api.v1.document.delete_assets", storage):
            yield storage


@pytest.fixture(scope="function")
def client(db_session, mock_storage):
    """Test client with the database session override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def create_test_user(db_session):
    """Factory fixture that creates (or reuses) a user with the given role"""

    def _create_user(role=UserRole.SUPER_ADMIN, email=None, name="Test User"):
        email = email or f"{role.value}@example.com"
        user = db_session.query(User).filter(User.email == email).first()
        if user:
            return user
        user = User(name=name, email=email, role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def auth_headers(create_test_user):
    """Factory fixture returning bearer headers for a user with the given role"""

    def _headers(role=UserRole.SUPER_ADMIN):
        user = create_test_user(role=role)
        access_token = create_access_token(data={"sub": user.email})
        return {"Authorization": f"Bearer {access_token}"}

    return _headers


@pytest.fixture
def super_admin_headers(auth_headers):
    return auth_headers(UserRole.SUPER_ADMIN)


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(UserRole.ADMIN)


@pytest.fixture
def coach_headers(auth_headers):
    return auth_headers(UserRole.COACH)


@pytest.fixture
def create_folder(client, super_admin_headers):
    """Create a folder through the API and return its data"""

    def _create(name, **extra):
        response = client.post(
            "/api/folders", json={"name": name, **extra}, headers=super_admin_headers
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def create_document(client, super_admin_headers):
    """Create a document through the API and return its data"""

    def _create(name, folder, public_id=None, **extra):
        payload = {
            "name": name,
            "original_filename": name.lower(),
            "format": name.rsplit(".", 1)[-1] if "." in name else None,
            "folder": folder,
            "public_id": public_id if public_id is not None else f"docs/{name}",
            **extra,
        }
        response = client.post("/api/documents", json=payload, headers=super_admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create
