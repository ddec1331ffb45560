"""
Modèle Utilisateur (Admin et Électeur)
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from voting_guard.database import Base


class UserRole(str, enum.Enum):
    """Rôles des utilisateurs"""
    ADMIN = "admin"
    VOTER = "voter"


class User(Base):
    """Modèle Utilisateur"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    nom = Column(String(100), nullable=False)
    prenom = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.VOTER, nullable=False)
    is_active = Column(Boolean, default=True)
    is_enrolled = Column(Boolean, default=False)  # Profil facial enregistré
    is_blocked = Column(Boolean, default=False)  # Bloqué après violations répétées
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    face_profile = relationship("FaceProfile", back_populates="user", uselist=False)
    voting_sessions = relationship("VotingSession", back_populates="user")
    security_logs = relationship("SecurityLog", back_populates="user")
    verification_cases = relationship(
        "VerificationCase",
        back_populates="user",
        foreign_keys="VerificationCase.user_id"
    )

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}"

    def __repr__(self):
        return f"<User {self.email}>"
