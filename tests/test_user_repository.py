"""Tests for UserRepository reset-token consumption across sessions."""

import threading
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models.user import User
from app.repositories.user import UserRepository
from app.services.account import AccountService
from app.services.reset_token import hash_reset_token


@pytest.fixture(name="session_factory")
def session_factory_fixture(tmp_path):
    """File-backed SQLite so separate sessions use separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'accounts.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(name="reset_digest")
def reset_digest_fixture(session_factory) -> str:
    """Create a user with a pending reset token and return the token digest."""
    repository = UserRepository()
    with session_factory() as db:
        repository.create(db, name="Ann", email="ann@x.com", password="secret1")
        token = AccountService(repository=repository).request_password_reset(db, "ann@x.com").reset_token
    return hash_reset_token(token)


def test_stale_session_cannot_reuse_consumed_token(session_factory, reset_digest):
    """A session that read the token before another session consumed it gets nothing."""
    repository = UserRepository()
    with session_factory() as first, session_factory() as second:
        # First session sees the pending token
        loaded = first.query(User).filter(User.reset_password_token == reset_digest).first()
        assert loaded is not None

        assert repository.consume_reset_token(second, reset_digest, "newpass1", now=datetime.utcnow()) is True
        assert repository.consume_reset_token(first, reset_digest, "newpass2", now=datetime.utcnow()) is False

    with session_factory() as db:
        stored = repository.find_with_secret(db, email="ann@x.com")
        assert stored.reset_password_token is None
        assert stored.reset_password_expire is None


def test_racing_confirmations_succeed_once(session_factory, reset_digest):
    """Two threads confirming the same token at once: exactly one wins."""
    repository = UserRepository()
    barrier = threading.Barrier(2)
    results: list[bool] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def confirm(password: str) -> None:
        try:
            with session_factory() as db:
                barrier.wait(timeout=10)
                consumed = repository.consume_reset_token(db, reset_digest, password, now=datetime.utcnow())
            with lock:
                results.append(consumed)
        except BaseException as e:  # surfaced below
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=confirm, args=(pw,)) for pw in ("newpass1", "newpass2")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert not errors
    assert sorted(results) == [False, True]
