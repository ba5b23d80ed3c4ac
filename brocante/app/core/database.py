from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from brocante.app.core.settings import get_settings
from brocante.app.core.base import Base  # noqa: F401 - re-exported for init_db

_settings = get_settings()
DB_URL = _settings.db_url

_engine_kwargs = {}
if not DB_URL.startswith("sqlite"):
    # SQLite uses a single-connection pool, pool sizing only applies to PostgreSQL
    _engine_kwargs.update(
        pool_size=_settings.DB_POOL_SIZE,
        max_overflow=_settings.DB_MAX_OVERFLOW,
        pool_recycle=_settings.DB_POOL_RECYCLE,
        pool_timeout=30,
    )

engine = create_async_engine(
    url=DB_URL,
    echo=False,
    pool_pre_ping=True,
    **_engine_kwargs,
)
async_session = async_sessionmaker(engine, expire_on_commit=False)
