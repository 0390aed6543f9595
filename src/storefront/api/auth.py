"""Caller identity forwarded by the gateway.

Authentication happens upstream; the gateway passes the user on
``X-User-Id`` and ``X-User-Role``.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, WebSocket

ROLES = ("buyer", "seller", "admin")


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, user_id) -> bool:
        return self.is_admin or str(user_id) == self.user_id


def current_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="buyer"),
) -> Principal:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    role = x_user_role.lower()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail=f"Unknown role {x_user_role}")
    return Principal(user_id=x_user_id, role=role)


def require_role(*roles):
    def dependency(principal: Principal = Depends(current_user)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail=f"Requires role: {', '.join(roles)}")
        return principal

    return dependency


admin_only = require_role("admin")
seller_only = require_role("seller", "admin")


def optional_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="buyer"),
) -> Principal | None:
    if not x_user_id:
        return None
    return current_user(x_user_id=x_user_id, x_user_role=x_user_role)


def socket_user(websocket: WebSocket) -> Principal | None:
    """Identity for a websocket handshake, taken from the same gateway headers.

    Query parameters are never trusted for identity.
    """
    user_id = websocket.headers.get("x-user-id")
    role = websocket.headers.get("x-user-role", "buyer").lower()
    if not user_id or role not in ROLES:
        return None
    return Principal(user_id=user_id, role=role)
