import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from continuum.core.errors import StorageFailure
from continuum.db.repositories import CardRepository, StreamRepository

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Атомарная единица работы поверх одной AsyncSession.

    Все шаги внутри блока ``async with`` фиксируются вместе или не фиксируются
    вовсе. Транзакция открывается первым запросом (autobegin), при выходе без
    исключения выполняется commit, при любом исключении - rollback.

    IntegrityError пробрасывается как есть, чтобы сервис мог повторить операцию,
    остальные ошибки SQLAlchemy превращаются в StorageFailure.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.streams = StreamRepository(session)
        self.cards = CardRepository(session)

    async def __aenter__(self) -> "UnitOfWork":
        if self.session.in_transaction():
            # Незакрытая транзакция от чтения вне единицы работы
            await self.session.rollback()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                raise
            except SQLAlchemyError as error:
                await self.session.rollback()
                logger.error("Commit failed: %s", error)
                raise StorageFailure("Failed to commit transaction") from error
            return False

        await self.session.rollback()
        if isinstance(exc, SQLAlchemyError) and not isinstance(exc, IntegrityError):
            logger.error("Transaction aborted by storage error: %s", exc)
            raise StorageFailure("Storage operation failed") from exc
        return False
