"""
Storage dependencies untuk FastAPI.
Satu CredentialStore per request; tidak ada global session.
"""

from typing import AsyncGenerator

from fastapi import Request

from authcore.repositories.base import CredentialStore
from authcore.repositories.sql import SqlCredentialStore


async def get_store(request: Request) -> AsyncGenerator[CredentialStore, None]:
    """
    Dependency untuk mendapatkan credential store.

    Backend memory memakai store milik aplikasi; backend sqlalchemy
    membuka AsyncSession baru yang ditutup setelah response.

    Yields:
        CredentialStore
    """
    state = request.app.state
    if state.settings.STORAGE_BACKEND == "memory":
        yield state.memory_store
        return

    async with state.database.session() as session:
        yield SqlCredentialStore(session)
