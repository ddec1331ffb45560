"""
Base de données de la surveillance du vote (SQLAlchemy asynchrone)
Sessions de vote, cas KYC, profils faciaux et journaux de sécurité
"""
from typing import Tuple
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from voting_guard.config import settings


def create_session_factory(url: str, **engine_options) -> Tuple[AsyncEngine, async_sessionmaker]:
    """Moteur asynchrone et fabrique de sessions pour une URL de base de données"""
    database_engine = create_async_engine(url, echo=settings.DEBUG, future=True, **engine_options)
    # expire_on_commit=False: les réponses lisent les objets après le commit
    return database_engine, async_sessionmaker(
        database_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


engine, async_session_maker = create_session_factory(settings.DATABASE_URL)


class Base(DeclarativeBase):
    """Classe de base des modèles de surveillance"""
    pass


async def get_db():
    """Session par requête: commit en fin de requête, rollback sur erreur"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = None):
    """Créer les tables des modèles sur le moteur donné (moteur par défaut sinon)"""
    import voting_guard.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
