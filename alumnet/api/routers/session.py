from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends

from ...auth.deps import get_optional_user
from ...domain.schemas.auth import SessionUserOut
from ...models import User

router = APIRouter(prefix="/api", tags=["session"])


@router.get("/user", response_model=SessionUserOut)
async def session_user(current: Optional[User] = Depends(get_optional_user)) -> SessionUserOut:
    # header widget: logged-in name/avatar, or the guest placeholder
    if current is None:
        return SessionUserOut.guest()
    return SessionUserOut.from_model(current)
