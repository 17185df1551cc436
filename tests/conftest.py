# tests/conftest.py
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ.pop("CRON_SECRET", None)

import pytest
from fastapi.testclient import TestClient

from carfinder import models
from carfinder.db import Base, engine, SessionLocal, get_db


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from carfinder.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def dealer(db):
    obj = models.Dealer(name="Lakeside Motors", email="sales@lakeside.example")
    db.add(obj)
    db.commit()
    return obj


@pytest.fixture
def other_dealer(db):
    obj = models.Dealer(name="Hilltop Autos")
    db.add(obj)
    db.commit()
    return obj


@pytest.fixture
def staff_user(db):
    user = models.User(email="staff@carfinder.example", name="Staff", role=models.ROLE_STAFF, api_key="staff-key")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def dealer_user(db, dealer):
    user = models.User(email="owner@lakeside.example", name="Owner", role=models.ROLE_DEALER, api_key="dealer-key")
    db.add(user)
    db.flush()
    db.add(models.DealerMembership(dealer_id=dealer.id, user_id=user.id, role=models.MEMBERSHIP_OWNER))
    db.commit()
    return user


@pytest.fixture
def buyer(db):
    user = models.User(email="buyer@example.com", name="Buyer", role=models.ROLE_BUYER, api_key="buyer-key")
    db.add(user)
    db.commit()
    return user
