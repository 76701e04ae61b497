"""WebSocket routes for real-time vault events"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from legacy.auth.context import AuthContext, get_auth_context, resolve_token
from legacy.errors import PermissionDenied, VaultNotFound
from legacy.services.rbac_service import rbac_service
from legacy.services.realtime import manager
from legacy.services.vault_service import vault_service

logger = logging.getLogger(__name__)
router = APIRouter()

# Application close codes
CLOSE_INVALID_TOKEN = 4401
CLOSE_NOT_A_MEMBER = 4403
CLOSE_VAULT_NOT_FOUND = 4404

RELAYED_SIGNALS = {"typing", "memory_focus", "memory_blur"}


@router.websocket("/ws/vaults/{vault_id}")
async def websocket_endpoint(websocket: WebSocket, vault_id: str):
    """WebSocket endpoint for real-time vault updates.

    Query params: ``token`` (required access token) and ``last_seq`` to
    replay events missed while disconnected.
    """
    user = resolve_token(websocket.query_params.get("token", ""))
    if user is None:
        await websocket.close(code=CLOSE_INVALID_TOKEN)
        return

    try:
        vault = vault_service.get_vault(vault_id)
        vault_service.require_member(vault, user.id, rbac_service.evaluator_for(user.id))
    except VaultNotFound:
        await websocket.close(code=CLOSE_VAULT_NOT_FOUND)
        return
    except PermissionDenied:
        await websocket.close(code=CLOSE_NOT_A_MEMBER)
        return

    last_seq: Optional[int] = None
    raw_seq = websocket.query_params.get("last_seq")
    if raw_seq is not None and raw_seq.isdigit():
        last_seq = int(raw_seq)

    await websocket.accept()
    await manager.connect(websocket, vault_id, user.id, user.name, last_seq=last_seq)

    try:
        while True:
            data = await websocket.receive_json()
            message_type = data.get("type")

            if message_type == "ping":
                await websocket.send_json({"type": "pong", "seq": manager.sequences.get(vault_id, 0)})

            elif message_type in RELAYED_SIGNALS:
                await manager.relay(websocket, message_type, {"memory_id": data.get("memory_id")})

            # Content changes only travel through the HTTP API
            else:
                logger.debug(f"Ignoring client message {message_type!r} on vault {vault_id}")

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error on vault {vault_id}: {e}")
    finally:
        info = manager.disconnect(websocket)
        # A deleted vault has no room left to announce to
        if info and vault_service.vault_exists(vault_id):
            await manager.publish(vault_id, "user_left", {
                "user": {"id": info["user_id"], "name": info["user_name"]}
            }, user_id=info["user_id"], user_name=info["user_name"])


@router.get("/ws/vaults/{vault_id}/users")
async def get_online_users(vault_id: str, ctx: AuthContext = Depends(get_auth_context)):
    """Get list of users currently online in a vault."""
    vault = vault_service.get_vault(vault_id)
    vault_service.require_member(vault, ctx.user.id, ctx.evaluator)
    users = manager.get_vault_users(vault_id)
    return {
        "vault_id": vault_id,
        "users": users,
        "count": len(users)
    }
