# tests/test_transactions.py

import pytest
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, ProgrammingError

from app import create_app
from app.config import Config
from app.errors import TransientIOError
from app.models import Job
from app.services import jobs, sequences
from app.services.transactions import run_in_transaction


def _failing(exc):
    def work(outbox):
        raise exc
    return work


def test_operational_error_is_transient(app):
    with pytest.raises(TransientIOError):
        run_in_transaction(_failing(OperationalError("SELECT 1", {}, Exception("timeout"))), label="t")


def test_interface_error_is_transient(app):
    # pg8000 reporta la conexión rechazada como InterfaceError
    refused = InterfaceError("SELECT 1", {}, ConnectionRefusedError("connection refused"))
    with pytest.raises(TransientIOError) as exc:
        run_in_transaction(_failing(refused), label="t")
    assert exc.value.code == "STORE_UNAVAILABLE"
    assert exc.value.http_status == 503


def test_invalidated_connection_is_transient(app):
    dropped = DBAPIError("SELECT 1", {}, Exception("server closed the connection"), connection_invalidated=True)
    with pytest.raises(TransientIOError):
        run_in_transaction(_failing(dropped), label="t")


def test_other_driver_errors_propagate(app):
    with pytest.raises(ProgrammingError):
        run_in_transaction(_failing(ProgrammingError("SELEC 1", {}, Exception("syntax"))), label="t")


def test_unreachable_postgres_is_transient():
    class UnreachableConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "postgresql+pg8000://u:p@127.0.0.1:1/freight"

    app = create_app(UnreachableConfig)
    with app.app_context():
        with pytest.raises(TransientIOError):
            jobs.register_job(customer="ABC", receiver_name="ABC")


def test_store_outage_is_503_over_http(client, monkeypatch):
    def refused(scope, now=None):
        raise InterfaceError("SELECT", {}, ConnectionRefusedError("connection refused"))

    monkeypatch.setattr(sequences, "next_id", refused)

    resp = client.post("/api/jobs", json={"receiver_name": "ABC Trading"})
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "STORE_UNAVAILABLE"
    assert Job.query.count() == 0
