from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.core.exceptions import DataAccessError
from brocante.app.core.logging import get_logger
from brocante.app.models.faq import Faq

logger = get_logger(__name__)


async def list_faqs(session: AsyncSession):
    result = await session.execute(select(Faq).order_by(Faq.order.asc(), Faq.id.asc()))
    return result.scalars().all()


async def create_faq(session: AsyncSession, question: str, answer: str, order: int = 0) -> Faq:
    faq = Faq(question=question, answer=answer, order=order)
    session.add(faq)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("FAQ store failure", error=str(e))
        raise DataAccessError("Fehler beim Speichern der FAQ", detail=str(e)) from e
    await session.refresh(faq)
    return faq
