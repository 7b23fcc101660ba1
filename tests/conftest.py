"""
Fixtures compartidas para Pytest.
Configura base de datos de test, cipher determinístico y cliente HTTP.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import get_settings
from app.core.crypto import SecretCipher, get_cipher
from app.core.security import hash_password
from app.database import Base, get_db
from app.main import app
from app.models.clinic import Clinic
from app.models.user import User, UserRole
from app.services.audit_service import AuditWriter
from app.services.clinic_service import default_clinic_settings

settings = get_settings()

# ── Engine de test (SQLite async) ────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

TEST_PASSWORD = "secret1"


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Crea y destruye las tablas para cada test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provee una sesión de DB de test."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker:
    return test_session_factory


@pytest.fixture
def cipher() -> SecretCipher:
    """Cipher con clave fija: evita derivar Scrypt en cada test."""
    return SecretCipher(bytes(range(32)))


@pytest_asyncio.fixture
async def audit_writer() -> AsyncGenerator[AuditWriter, None]:
    writer = AuditWriter(test_session_factory, maxsize=100)
    await writer.start()
    yield writer
    await writer.stop()


@pytest_asyncio.fixture
async def client(
    cipher: SecretCipher,
    audit_writer: AuditWriter,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP de test. Cada request abre su propia sesión de DB
    (commit al terminar, rollback si hubo error), igual que get_db.
    """

    async def _get_test_db():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_cipher] = lambda: cipher
    # ASGITransport no ejecuta el lifespan: el writer se instala a mano
    app.state.audit_writer = audit_writer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.audit_writer


@pytest.fixture
def api() -> str:
    return settings.API_V1_PREFIX


@pytest.fixture
def load_user():
    """Lee un usuario con una sesión nueva (sin identity map previo)."""

    async def _load(email: str) -> User | None:
        async with test_session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    return _load


@pytest_asyncio.fixture
async def test_clinic(db_session: AsyncSession) -> Clinic:
    """Crea una clínica de test."""
    clinic = Clinic(
        name="Clínica Test",
        contact_email="admin@clinic.com",
        settings=default_clinic_settings(),
    )
    db_session.add(clinic)
    await db_session.commit()
    await db_session.refresh(clinic)
    return clinic


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    """Admin con contraseña y sin clínica: se crea en su primera acción."""
    user = User(
        email="admin@clinic.com",
        password_hash=hash_password(TEST_PASSWORD),
        role=UserRole.ADMIN,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_doctor(db_session: AsyncSession, test_clinic: Clinic) -> User:
    user = User(
        clinic_id=test_clinic.id,
        email="doctor@clinic.com",
        password_hash=hash_password(TEST_PASSWORD),
        role=UserRole.DOCTOR,
        specialty="Pediatría",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, test_admin: User, api: str) -> AsyncClient:
    """Cliente con la cookie de sesión del admin ya emitida."""
    response = await client.post(
        f"{api}/auth/login-password",
        json={"email": test_admin.email, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return client
