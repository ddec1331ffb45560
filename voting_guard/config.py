"""
Configuration de l'application
"""
from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    """Paramètres de configuration"""

    # Application
    APP_NAME: str = "Voting Guard"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Base de données
    DATABASE_URL: str = "sqlite+aiosqlite:///./voting_guard.db"

    # Sécurité
    SECRET_KEY: str = "votre-cle-secrete-tres-longue-et-complexe-a-changer"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BIOMETRIC_ENCRYPTION_KEY: Optional[str] = None

    # Reconnaissance faciale - seuils
    FACE_MATCH_THRESHOLD: float = 0.6  # Distance euclidienne max entre descripteurs
    FACE_SCORE_SCALE: float = 1.2  # score = 1 - min(1, distance / scale)

    # Comparaison de documents (KYC)
    DOCUMENT_SIMILARITY_THRESHOLD: int = 85  # Similarité perceptuelle minimale (%)

    # Surveillance du vote
    MAX_VIOLATIONS: int = 3  # 3 violations = vote bloqué
    MONITOR_CHECK_INTERVAL_SECONDS: float = 3.0
    MONITOR_JPEG_QUALITY: int = 70
    SECURITY_CHECK_URL: str = "http://localhost:8000/api/security/voting-session-check"
    SECURITY_CHECK_TIMEOUT_SECONDS: float = 10.0

    # Notifications
    NOTIFICATION_QUEUE_SIZE: int = 100

    # Stockage
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 Mo

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Créer le dossier uploads s'il n'existe pas
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
