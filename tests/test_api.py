import asyncio
import logging
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from selfecho.container import ApplicationContainer
from selfecho.controllers.imap.connection import ConnectionManager
from selfecho.create_app import create_app
from selfecho.models import Base
from tests.fakes import FakeMailbox, client_factory_for


@pytest.fixture
def api_engine(tmp_path) -> AsyncEngine:
    # NullPool: connections must not outlive the loop they were opened on.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)

    async def create_tables() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    return engine


@pytest.fixture
def client(api_engine: AsyncEngine, mailbox: FakeMailbox) -> Iterator[TestClient]:
    container = ApplicationContainer()
    container.controllers.imap_connection_manager.override(
        ConnectionManager(container.controllers.vault(), client_factory=client_factory_for(mailbox))
    )
    container.wire(packages=["selfecho.api"])

    with TestClient(create_app(container, engine=api_engine)) as test_client:
        yield test_client

    container.unwire()


def register(client: TestClient, **overrides) -> int:
    payload = {"host": "imap.example.com", "username": "me@example.com", "password": "hunter2", **overrides}
    response = client.post("/api/imap/accounts", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_register_and_list_accounts(client: TestClient):
    account_id = register(client, tlsMode="starttls", port=143)

    response = client.get("/api/imap/accounts")

    assert response.status_code == 200
    assert response.headers["X-Total-Count"] == "1"
    [account] = response.json()
    assert account["id"] == account_id
    assert account["port"] == 143
    assert account["useSsl"] is False
    assert account["useStartTls"] is True
    assert account["lastUid"] == 0
    assert "credentials" not in account
    assert "password" not in account


def test_register_account_validation_error(client: TestClient):
    response = client.post(
        "/api/imap/accounts", json={"host": " ", "username": "me@example.com", "password": "hunter2"}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "invalid_data"
    assert body["error_description"]


def test_register_account_requires_fields(client: TestClient):
    response = client.post("/api/imap/accounts", json={"host": "imap.example.com"})

    assert response.status_code == 422


def test_update_credentials(client: TestClient, mailbox: FakeMailbox):
    account_id = register(client, password="wrong")
    mailbox.add("Hello")

    assert client.get("/api/imap/messages").status_code == 502

    response = client.put(f"/api/imap/accounts/{account_id}/credentials", json={"password": "hunter2"})
    assert response.status_code == 204

    assert client.get("/api/imap/messages").status_code == 200


def test_update_credentials_unknown_account(client: TestClient):
    response = client.put("/api/imap/accounts/404/credentials", json={"password": "hunter2"})

    assert response.status_code == 404
    assert response.json()["error"] == "entity_not_found"


def test_list_messages_paginates(client: TestClient, mailbox: FakeMailbox):
    register(client)
    for i in range(3):
        mailbox.add(f"Post {i}", flags=("\\Seen",))

    first = client.get("/api/imap/messages", params={"limit": 2})
    second = client.get("/api/imap/messages", params={"limit": 2, "page": 2})

    assert first.status_code == 200
    assert first.headers["X-Total-Count"] == "3"
    assert [message["uid"] for message in first.json()] == [3, 2]
    message = first.json()[0]
    assert message["subject"] == "Post 2"
    assert message["from"] == "alice@example.com"
    assert message["flags"] == ["\\Seen"]
    assert message["snippet"] == "Hello"
    assert [message["uid"] for message in second.json()] == [1]


def test_list_messages_for_account(client: TestClient, mailbox: FakeMailbox):
    account_id = register(client)
    mailbox.add("Post")

    response = client.get("/api/imap/messages", params={"accountId": account_id})

    assert response.status_code == 200
    assert len(response.json()) == 1


@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"page": 0}])
def test_list_messages_rejects_bad_paging(client: TestClient, params: dict):
    register(client)

    assert client.get("/api/imap/messages", params=params).status_code == 422


def test_list_messages_without_account(client: TestClient):
    response = client.get("/api/imap/messages")

    assert response.status_code == 404
    assert response.json()["error"] == "entity_not_found"


def test_list_messages_mailbox_unavailable(client: TestClient, mailbox: FakeMailbox):
    register(client)
    mailbox.fail_command = "hello"

    response = client.get("/api/imap/messages")

    assert response.status_code == 502
    assert response.json()["error"] == "mailbox_unavailable"


def test_get_message(client: TestClient, mailbox: FakeMailbox):
    register(client)
    uid = mailbox.add("Detail", body="line one\nline two")

    response = client.get(f"/api/imap/messages/{uid}")

    assert response.status_code == 200
    message = response.json()
    assert message["uid"] == uid
    assert message["subject"] == "Detail"
    assert message["body"] == "line one<br>line two"
    assert message["date"].startswith("2024-01-01T12:00:00")


@pytest.mark.parametrize("uid", ["0", str(2**32), "abc"])
def test_get_message_rejects_bad_uid(client: TestClient, uid: str):
    register(client)

    assert client.get(f"/api/imap/messages/{uid}").status_code == 422


def test_get_message_not_found(client: TestClient, mailbox: FakeMailbox):
    register(client)
    mailbox.add("Only")

    response = client.get("/api/imap/messages/42")

    assert response.status_code == 404


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database_latency_ms"] is not None
    assert body["background_refreshes"] == 0
    assert body["list_cache"]["ttl_seconds"] == 30
    assert body["python_version"]


def test_unhandled_error_is_logged_once(api_engine: AsyncEngine, caplog: pytest.LogCaptureFixture):
    container = ApplicationContainer()
    controller = container.controllers.mailbox_controller()

    async def explode(*args, **kwargs):
        raise RuntimeError("kaboom")

    controller.list_messages = explode
    container.wire(packages=["selfecho.api"])
    try:
        with TestClient(create_app(container, engine=api_engine), raise_server_exceptions=False) as test_client:
            with caplog.at_level(logging.ERROR):
                response = test_client.get("/api/imap/messages")
    finally:
        container.unwire()

    assert response.status_code == 500
    assert response.json() == {"error": "unhandled_exception"}
    assert len([record for record in caplog.records if "kaboom" in record.getMessage()]) == 1
