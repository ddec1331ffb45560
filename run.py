"""
Script de démarrage de l'application
"""
import uvicorn
import asyncio
import logging

from voting_guard.config import settings
from voting_guard.database import init_db, async_session_maker
from voting_guard.services.auth_service import create_user, get_user_by_email
from voting_guard.models.user import UserRole

logger = logging.getLogger("voting_guard.run")


async def create_admin_user():
    """Créer un utilisateur admin par défaut"""
    async with async_session_maker() as db:
        existing = await get_user_by_email(db, "admin@example.com")
        if not existing:
            await create_user(
                db,
                email="admin@example.com",
                password="admin123",
                nom="Admin",
                prenom="Super",
                role=UserRole.ADMIN
            )
            logger.info("Utilisateur admin créé: admin@example.com / admin123")
        else:
            logger.info("Utilisateur admin existe déjà")


async def main():
    """Initialisation et démarrage"""
    logger.info("Démarrage de Voting Guard...")

    await init_db()
    logger.info("Base de données initialisée")

    await create_admin_user()


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    asyncio.run(main())

    logger.info("Serveur démarré sur http://localhost:8000 (documentation: /docs)")

    uvicorn.run(
        "voting_guard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
