# Modèles de données
# Importer tous les modèles pour que SQLAlchemy puisse résoudre les relations

from voting_guard.models.user import User, UserRole
from voting_guard.models.face_profile import FaceProfile
from voting_guard.models.voting_session import VotingSession, VotingSessionStatus
from voting_guard.models.verification_case import VerificationCase, VerificationStatus
from voting_guard.models.security_log import SecurityLog, LogType

__all__ = [
    "User",
    "UserRole",
    "FaceProfile",
    "VotingSession",
    "VotingSessionStatus",
    "VerificationCase",
    "VerificationStatus",
    "SecurityLog",
    "LogType",
]
