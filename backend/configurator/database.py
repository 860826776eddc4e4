import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
# Importer SQLModel pour utiliser ses métadonnées
from sqlmodel import SQLModel

from configurator.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

# SQLite (tests, démo) n'accepte pas les paramètres de pool
_pool_kwargs = {} if DATABASE_URL.startswith("sqlite") else {
    "pool_size": settings.DB_POOL_SIZE,
    "max_overflow": settings.DB_MAX_OVERFLOW,
}

try:
    # Créer le moteur de base de données asynchrone
    engine = create_async_engine(
        DATABASE_URL,
        echo=settings.DB_ECHO_LOG,
        **_pool_kwargs,
    )

    # Créer une classe de session asynchrone
    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False  # Empêche les objets d'expirer après commit
    )

    logger.info("Moteur et Session Factory SQLAlchemy Async configurés. Les modèles utilisent SQLModel.metadata.")

except Exception as e:
    logger.critical(f"Erreur lors de la configuration de SQLAlchemy Async: {e}", exc_info=True)
    engine = None
    AsyncSessionLocal = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session."""
    if AsyncSessionLocal is None:
        logger.error("La factory de session SQLAlchemy n'est pas initialisée.")
        raise RuntimeError("Database session factory is not initialized.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Pas de commit ici: les services gèrent leurs transactions
            # (la génération de variantes est tout-ou-rien).
        except Exception as e:
            logger.error(f"Erreur durant la session DB, rollback: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
            logger.debug("Session DB fermée.")


async def create_tables():
    """Crée toutes les tables déclarées sur SQLModel.metadata."""
    # Enregistre toutes les tables sur les métadonnées partagées
    import configurator.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_tables():
    """Supprime toutes les tables déclarées sur SQLModel.metadata."""
    import configurator.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
