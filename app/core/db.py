from collections.abc import AsyncGenerator
from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings

engine = create_async_engine(settings.db_url)


async def get_db() -> AsyncGenerator[AsyncSession]:
    async with AsyncSession(
        engine, autocommit=False, autoflush=False, expire_on_commit=False
    ) as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create every table registered on the SQLModel metadata."""
    import app.models  # noqa: F401, PLC0415

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


class UnitOfWork:
    """One transaction on a session, shared by every collaborator of an operation.

    Collaborators stage their writes through ``uow.session`` and flush, but never
    commit; the transaction commits when the block exits cleanly and rolls back
    as a whole otherwise.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.session.commit()
        else:
            await self.session.rollback()
