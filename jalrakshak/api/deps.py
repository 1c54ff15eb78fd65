from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import OAuth2PasswordBearer

from jalrakshak.domain.permissions import has_permission
from jalrakshak.infra.auth import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/login")

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_FORBIDDEN = 4403


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    return claims


def require_perm(permission: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not has_permission(claims, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return claims

    return _checker


def extract_ws_token(websocket: WebSocket, token: str | None) -> str | None:
    if token:
        return token
    auth_header = websocket.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return None


async def authenticate_websocket(
    websocket: WebSocket,
    token: str | None,
    permission: str,
) -> dict[str, Any] | None:
    """Claims for a websocket client, or ``None`` after closing the socket."""
    resolved_token = extract_ws_token(websocket, token)
    if not resolved_token:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return None
    try:
        claims = decode_access_token(resolved_token)
    except Exception:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return None
    if not has_permission(claims, permission):
        await websocket.close(code=WS_CLOSE_FORBIDDEN)
        return None
    utility_id = claims.get("utility_id")
    if not isinstance(utility_id, str) or not utility_id:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return None
    return claims
