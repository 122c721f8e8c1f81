import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from soiltesting.db.session import Base
from soiltesting.db import models
from soiltesting.services import scheduling_service


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sms_outbox(monkeypatch):
    sent = []

    def fake_send_sms(recipient, message):
        sent.append((recipient, message))
        return True

    monkeypatch.setattr(scheduling_service.notification_service, "send_sms", fake_send_sms)
    return sent
