"""
Create all tables and, with --seed-faqs, the default storefront FAQ.

Usage: python -m brocante.init_db [--seed-faqs]
"""
import asyncio
import sys

from sqlalchemy import select

from brocante.app.core.database import engine, async_session, Base
from brocante.app.models import product, reservation, faq  # noqa: F401 - register tables
from brocante.app.models.faq import Faq

DEFAULT_FAQS = [
    (
        "Wie funktioniert die Reservierung?",
        "Sie können einen Artikel direkt über die Webseite reservieren. Die Reservierung ist 48 Stunden gültig.",
    ),
    (
        "Wann kann ich die Artikel abholen?",
        "Abholzeiten sind Mo-Fr 17:00-19:00 und Sa-So 10:00-16:00. Der genaue Termin wird bei der Reservierung vereinbart.",
    ),
    (
        "Sind die Preise verhandelbar?",
        "Die Preise sind bereits fair kalkuliert, aber bei Abnahme mehrerer Artikel können wir gerne sprechen.",
    ),
]


async def init_db(seed_faqs: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created.")

    if seed_faqs:
        async with async_session() as session:
            existing = await session.scalar(select(Faq.id).limit(1))
            if existing is None:
                for order, (question, answer) in enumerate(DEFAULT_FAQS, start=1):
                    session.add(Faq(question=question, answer=answer, order=order))
                await session.commit()
                print(f"Seeded {len(DEFAULT_FAQS)} FAQ entries.")
            else:
                print("FAQ table is not empty, skipping seed.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(seed_faqs="--seed-faqs" in sys.argv[1:]))
