import os
import tempfile

# Configuration de test avant tout import de l'application
_TEST_DIR = tempfile.mkdtemp(prefix="voting_guard_tests_")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TEST_DIR, "uploads"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}")
os.environ.setdefault("BIOMETRIC_ENCRYPTION_KEY", "test-encryption-key")

from typing import List, Optional

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

import voting_guard.main as main_module
from voting_guard.database import create_session_factory, get_db, init_db
from voting_guard.models.user import UserRole
from voting_guard.services.auth_service import create_user
from voting_guard.services.face_service import FaceAnalysis, face_service


# Images synthétiques

def gradient_image(size: int = 64, vertical: bool = False) -> np.ndarray:
    """Dégradé 0..252 sur 64 pixels, horizontal ou vertical"""
    ramp = (np.arange(size) * (256 // size)).astype(np.uint8)
    image = np.tile(ramp, (size, 1))
    return image.T.copy() if vertical else image


def encode(image: np.ndarray, ext: str = ".png", params: Optional[list] = None) -> bytes:
    ok, buffer = cv2.imencode(ext, image, params or [])
    assert ok
    return buffer.tobytes()


def random_descriptor(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(0.0, 0.1, 128)


# Analyse faciale factice

class FakeAnalyzer:
    """Renvoie les analyses programmées, dans l'ordre; b"garbage" est illisible"""

    def __init__(self):
        self.queue: List[FaceAnalysis] = []
        self.calls = 0

    def push(self, *analyses: FaceAnalysis) -> None:
        self.queue.extend(analyses)

    def analyze_frame_bytes(self, image_data: bytes) -> FaceAnalysis:
        self.calls += 1
        if image_data == b"garbage":
            raise ValueError("Image illisible")
        if self.queue:
            return self.queue.pop(0)
        return FaceAnalysis(faces_in_frame=1)


@pytest.fixture
def fake_analyzer(monkeypatch):
    analyzer = FakeAnalyzer()
    monkeypatch.setattr(face_service, "analyze_frame_bytes", analyzer.analyze_frame_bytes)
    return analyzer


# Application et base de données de test

@pytest.fixture
def session_maker(tmp_path):
    return create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)


@pytest.fixture
def client(session_maker, monkeypatch):
    engine, maker = session_maker

    async def override_get_db():
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(main_module, "init_db", lambda: init_db(bind=engine))
    main_module.app.dependency_overrides[get_db] = override_get_db

    with TestClient(main_module.app) as test_client:
        test_client.session_maker = maker
        yield test_client

    main_module.app.dependency_overrides.clear()


def login(client: TestClient, email: str, password: str) -> dict:
    response = client.post("/api/auth/token", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def voter(client):
    """Électeur inscrit: (id, en-têtes d'authentification)"""
    response = client.post("/api/auth/register", json={
        "email": "voter@example.com",
        "password": "secret123",
        "nom": "Doe",
        "prenom": "Jane",
    })
    assert response.status_code == 201, response.text
    return response.json()["id"], login(client, "voter@example.com", "secret123")


@pytest.fixture
def admin_headers(client):
    async def create_admin():
        async with client.session_maker() as db:
            await create_user(
                db,
                email="admin@example.com",
                password="admin123",
                nom="Admin",
                prenom="Super",
                role=UserRole.ADMIN
            )

    client.portal.call(create_admin)
    return login(client, "admin@example.com", "admin123")
