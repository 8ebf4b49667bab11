import os

# Must be set before the app modules build their engine and settings.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_crm.db")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.db import Base, get_db
from app.main import app
from app.models import Client, Role, SupportLine, User
from app.services.users import seed_roles

# Setup a SQLite database file for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_crm.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    # Create the tables
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    seed_roles(db)
    db.commit()
    try:
        yield db
    finally:
        db.close()
        # Drop the tables after the test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            db = TestingSessionLocal()
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(name, role="operator1", line=None, status="active"):
        counter["n"] += 1
        role_row = db_session.query(Role).filter_by(name=role).one()
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}.{counter['n']}@example.com",
            role_id=role_row.id,
            support_line_id=line.id if line is not None else None,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_line(db_session):
    def _make_line(code, is_active=True, max_operators=0, auto_assign=True, round_robin=True, priority=0):
        line = SupportLine(
            name=f"Line {code}",
            code=code,
            is_active=is_active,
            max_operators=max_operators,
            policy={"auto_assign": auto_assign, "round_robin": round_robin, "priority": priority},
        )
        db_session.add(line)
        db_session.commit()
        db_session.refresh(line)
        return line

    return _make_line


@pytest.fixture
def customer(db_session):
    client_row = Client(name="Иван Петров", channel="telegram", external_id="tg-100")
    db_session.add(client_row)
    db_session.commit()
    db_session.refresh(client_row)
    return client_row


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role="admin")


def auth(user):
    return {"X-User-ID": str(user.id)}
