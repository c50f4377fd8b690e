"""Shared fixtures: isolated database, API client, tokens and a sample route tree."""
import itertools
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicflow.core.config import settings
from clinicflow.db.base import Base
from clinicflow.db.session import get_db
from clinicflow.models import Permission, Role, User, LegacyRole
from clinicflow.main import app


ROUTE_FILES = {
    "dashboard/page.tsx": "export default function Dashboard() {}",
    "dashboard/patients/page.tsx": "export default function Patients() {}",
    "dashboard/patients/[id]/page.tsx": "export default function Patient() {}",
    "dashboard/profile/page.tsx": "export default function Profile() {}",
    "dashboard/ehr/new/page.tsx": "export default function NewRecord() {}",
    "dashboard/billing/page.tsx": "export default function Billing() {}",
    "admin/page.tsx": "export default function Admin() {}",
    "admin/users/page.tsx": "export default function Users() {}",
    "admin/permissions/page.tsx": "export default function Permissions() {}",
    "admin/seed-rbac/page.tsx": "export default function SeedRbac() {}",
    "api/patients/route.ts": (
        "export async function GET(req) {}\n"
        "export async function POST(req) {}\n"
    ),
    "api/patients/[id]/route.ts": (
        "export async function GET(req) {}\n"
        "export async function PUT(req) {}\n"
        "export async function DELETE(req) {}\n"
    ),
    "(marketing)/page.tsx": "export default function Home() {}",
    "components/page.tsx": "export default function NotARoute() {}",
    "node_modules/pkg/page.tsx": "export default function NotARoute() {}",
    ".next/server/page.tsx": "export default function NotARoute() {}",
    "dashboard/patients/helpers.ts": "export function GET() {}",
}


def write_tree(root: Path, files: dict) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def make_token(user_id: int, role: str, **claims) -> str:
    payload = {"sub": str(user_id), "role": role, **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def db(engine):
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSession()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user_id: int = 1, role: str = LegacyRole.master_admin.value, **claims):
        return {"Authorization": f"Bearer {make_token(user_id, role, **claims)}"}
    return _headers


@pytest.fixture()
def route_tree(tmp_path, monkeypatch):
    """A small Next.js-style route tree, also set as the configured route root."""
    root = write_tree(tmp_path / "app", ROUTE_FILES)
    monkeypatch.setattr(settings, "ROUTE_ROOT", str(root))
    return root


@pytest.fixture()
def make_permission(db):
    def _make(route: str, method: str = "GET", category: str = "dashboard", is_active: bool = True):
        permission = Permission(
            route=route,
            method=method,
            name=f"{route} ({method})",
            description=f"Access to {route} with {method} methods",
            category=category,
            is_active=is_active,
        )
        db.add(permission)
        db.commit()
        db.refresh(permission)
        return permission
    return _make


@pytest.fixture()
def make_role(db):
    def _make(name: str, permissions=(), is_active: bool = True, is_system: bool = False):
        role = Role(
            name=name,
            description=f"{name} role",
            permissions=list(permissions),
            is_active=is_active,
            is_system=is_system,
        )
        db.add(role)
        db.commit()
        db.refresh(role)
        return role
    return _make


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)

    def _make(role: str = LegacyRole.patient.value, roles=(), email: str = None):
        n = next(counter)
        user = User(
            email=email or f"user{n}@clinic.test",
            first_name="Test",
            last_name=f"User{n}",
            role=role,
            roles=list(roles),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make
