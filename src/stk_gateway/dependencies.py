"""FastAPI dependency: get_current_user_id.

Authentication happens upstream; the gateway forwards the authenticated user
id in the X-User-Id header. The core trusts it and never authenticates.

Usage in any router:
    from src.stk_gateway.dependencies import get_current_user_id

    @router.get("/wallet")
    async def wallet(user_id: str = Depends(get_current_user_id)):
        ...
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"

_MISSING_IDENTITY = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail=f"Missing {USER_ID_HEADER} header",
)


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> str:
    """Return the caller's user id. Raises HTTP 401 if the header is absent."""
    if x_user_id is None or not x_user_id.strip():
        raise _MISSING_IDENTITY
    return x_user_id.strip()
