"""
Application principale FastAPI
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from voting_guard.config import settings
from voting_guard.database import init_db
from voting_guard.routers import admin, auth, kyc, notifications, security
from voting_guard.services.notification_service import NotificationBroadcaster

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application"""
    # Startup
    await init_db()
    app.state.broadcaster = NotificationBroadcaster(settings.NOTIFICATION_QUEUE_SIZE)
    logger.info("Base de données initialisée")
    yield
    # Shutdown
    logger.info("Arrêt de l'application")


# Créer l'application FastAPI
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    Sécurité des sessions de vote et vérification d'identité

    - Comparaison de pièces d'identité (empreinte exacte puis perceptuelle)
    - Surveillance caméra pendant le vote (avertissements puis blocage)
    - Notifications temps réel pour les administrateurs
    """,
    lifespan=lifespan
)

# Configuration CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # En production, spécifier les origines autorisées
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Inclure les routers
app.include_router(auth.router, prefix="/api")
app.include_router(security.router, prefix="/api")
app.include_router(kyc.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.get("/")
async def root():
    """Page d'accueil"""
    return {
        "message": "Bienvenue sur Voting Guard",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health_check():
    """Vérification de santé"""
    return {"status": "healthy", "version": settings.APP_VERSION}
