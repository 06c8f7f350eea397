import os
import tempfile

import pytest

# Configure before the app (and its settings) are imported
_db_dir = tempfile.mkdtemp(prefix="edumessage-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["LOG_TO_FILE"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "development"
os.environ["GEMINI_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from edumessage.core.rate_limit import limiter  # noqa: E402
from edumessage.db.database import Base, SessionLocal, engine, get_db  # noqa: E402
from edumessage.main import app  # noqa: E402
import edumessage.models  # noqa: E402,F401

# Tests log in many times per minute
limiter.enabled = False


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


PASSWORD = "Password123!"


@pytest.fixture()
def make_user(db_session):
    """Return a factory that fetches a user by email or creates it.

    The test DB lives for the whole session, so rows are reused across tests.
    """
    from edumessage.core.security import get_password_hash
    from edumessage.models.user import User

    def _make(email, role, full_name=None):
        user = db_session.query(User).filter(User.email == email).first()
        if user:
            return user
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].replace("_", " ").title(),
            role=role,
            hashed_password=get_password_hash(PASSWORD),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_class(db_session):
    """Return a factory for a teacher's class with the given members, reused by code."""
    from edumessage.models.class_model import Class, ClassMember

    def _make(code, teacher, members=(), name="Test Class", subject="Math", grade=5):
        cls = db_session.query(Class).filter(Class.code == code).first()
        if not cls:
            cls = Class(name=name, code=code, teacher_id=teacher.id, subject=subject, grade=grade)
            db_session.add(cls)
            db_session.commit()
            db_session.refresh(cls)
        for member in members:
            exists = db_session.query(ClassMember).filter(
                ClassMember.class_id == cls.id, ClassMember.user_id == member.id,
            ).first()
            if not exists:
                db_session.add(ClassMember(class_id=cls.id, user_id=member.id, role=member.role))
        db_session.commit()
        return cls

    return _make
