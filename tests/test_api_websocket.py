"""WebSocket endpoint tests"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from legacy.auth.jwt import create_access_token
from legacy.services.account_service import account_service
from legacy.services.memory_service import memory_service
from legacy.services.realtime import manager
from legacy.services.vault_service import vault_service

from tests.factories import member_add, memory_create, vault_create


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def owner(app):
    return account_service.signup("Grandma", "grandma@example.com", "secret")


@pytest.fixture
def shared_vault(owner):
    return vault_service.create_vault(owner, vault_create(name="Family"))


def token_for(user) -> str:
    return create_access_token(data={"sub": user.id})


class TestVaultSocket:
    """Test connecting to a vault's event stream"""

    def test_invalid_token_closes(self, client, shared_vault):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws/vaults/{shared_vault.id}?token=garbage") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4401

    def test_unknown_vault_closes(self, client, owner):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws/vaults/vault_missing?token={token_for(owner)}") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4404

    def test_non_member_closes(self, client, shared_vault):
        stranger = account_service.signup("Stranger", "stranger@example.com", "secret")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws/vaults/{shared_vault.id}?token={token_for(stranger)}") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4403

    def test_member_receives_presence_and_pong(self, client, owner, shared_vault):
        with client.websocket_connect(f"/ws/vaults/{shared_vault.id}?token={token_for(owner)}") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "users_online"
            assert [u["user_id"] for u in welcome["users"]] == [owner.id]

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

        assert manager.get_vault_users(shared_vault.id) == []

    def test_online_users_endpoint(self, client, owner, shared_vault):
        response = client.get(
            f"/ws/vaults/{shared_vault.id}/users",
            headers={"Authorization": f"Bearer {token_for(owner)}"}
        )
        assert response.status_code == 200
        assert response.json() == {"vault_id": shared_vault.id, "users": [], "count": 0}

    def test_deleted_vault_leaves_no_sequencing_state(self, client, owner, shared_vault):
        with client.websocket_connect(f"/ws/vaults/{shared_vault.id}?token={token_for(owner)}") as ws:
            ws.receive_json()
            vault_service.delete_vault(shared_vault.id, owner)
            manager.forget_vault(shared_vault.id)

        assert shared_vault.id not in manager.sequences
        assert shared_vault.id not in manager.history


class TestCommentBroadcasts:
    """Test which comment events reach other members"""

    @pytest.fixture
    def moderated(self, owner):
        vault = vault_service.create_vault(owner, vault_create(name="Moderated", require_approval=True))
        uploader = account_service.signup("Uploader", "uploader@example.com", "secret")
        watcher = account_service.signup("Watcher", "watcher@example.com", "secret")
        vault_service.add_member(vault.id, owner, member_add(user_id=uploader.id))
        vault_service.add_member(vault.id, owner, member_add(user_id=watcher.id))
        return vault, uploader, watcher

    def comment(self, client, vault_id, memory_id, user, text):
        response = client.post(
            f"/vaults/{vault_id}/memories/{memory_id}/comments",
            json={"text": text},
            headers={"Authorization": f"Bearer {token_for(user)}"}
        )
        assert response.status_code == 200, response.text

    def test_comment_on_pending_memory_not_broadcast(self, client, moderated):
        vault, uploader, watcher = moderated
        pending = memory_service.upload(vault.id, uploader, memory_create())

        with client.websocket_connect(f"/ws/vaults/{vault.id}?token={token_for(watcher)}") as ws:
            assert ws.receive_json()["type"] == "users_online"

            self.comment(client, vault.id, pending.id, uploader, "private note")

            # Messages arrive in order, so a leaked comment would precede the pong
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_comment_on_approved_memory_broadcast(self, client, owner, moderated):
        vault, uploader, watcher = moderated
        memory = memory_service.upload(vault.id, owner, memory_create())

        with client.websocket_connect(f"/ws/vaults/{vault.id}?token={token_for(watcher)}") as ws:
            ws.receive_json()

            self.comment(client, vault.id, memory.id, uploader, "Lovely")

            event = ws.receive_json()
            assert event["type"] == "comment_added"
            assert event["data"]["comment"]["text"] == "Lovely"
