from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from apps.invest.config import get_invest_settings

settings = get_invest_settings()


def _engine_options(url: str) -> dict:
    options = {"echo": False, "future": True, "pool_pre_ping": True}
    if url.startswith("postgresql+asyncpg"):
        options["pool_recycle"] = 300
        options["connect_args"] = {
            "server_settings": {
                "application_name": "invest_platform"
            },
            "ssl": False
        }
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_invest_db():
    async with engine.begin() as conn:
        # Import all models to ensure they're registered
        import apps.invest.models  # noqa: F401
        import core.auth.models  # noqa: F401

        await conn.run_sync(SQLModel.metadata.create_all)


async def get_invest_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
