import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Charger les variables d'environnement AVANT de définir la classe Settings
load_dotenv()


class Settings(BaseSettings):
    """Configuration du moteur de configuration produit / nomenclatures."""

    # --- Base de Données ---
    POSTGRES_DB: str = "configurator"
    POSTGRES_USER: str = "configurator"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    DATABASE_URL: Optional[str] = None  # Prioritaire sur les variables POSTGRES_* si défini
    DB_ECHO_LOG: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # --- Génération des variantes ---
    SKU_ABBREVIATION_LENGTH: int = 3
    SKU_SEPARATOR: str = "-"
    VARIANT_GENERATION_MAX_ATTEMPTS: int = 3
    USE_ADVISORY_LOCK: bool = True

    # --- Stock / Nomenclatures ---
    DEFAULT_UNIT_OF_MEASURE: str = "unit"
    DEFAULT_LOW_STOCK_THRESHOLD: int = 5

    # --- Pagination ---
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 250

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignorer les variables d'env non définies dans le modèle
    )

    @property
    def database_url(self) -> str:
        """URL SQLAlchemy effective (asyncpg par défaut)."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


# Instancier la classe de configuration
settings = Settings()

if not settings.DATABASE_URL and not settings.POSTGRES_PASSWORD:
    logger.warning("POSTGRES_PASSWORD n'est pas défini. Définir DATABASE_URL ou POSTGRES_PASSWORD dans l'environnement.")

logger.info(f"Configuration chargée: DB={settings.POSTGRES_DB}@{settings.POSTGRES_HOST}, SKU abrégé sur {settings.SKU_ABBREVIATION_LENGTH} caractères")
