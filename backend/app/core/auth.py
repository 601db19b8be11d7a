"""Authenticated caller lookup.

Sessions are verified by the gateway in front of this service, which forwards
the user id in a trusted header. Anything without it is rejected.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request

from app.core.config import settings


@dataclass(frozen=True)
class User:
    id: str


async def get_current_user(request: Request) -> User:
    user_id = request.headers.get(settings.auth_header, "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return User(id=user_id)
