"""
Modèle pour les dossiers de vérification d'identité (KYC)
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from voting_guard.database import Base


class VerificationStatus(str, enum.Enum):
    """Statuts d'un dossier de vérification"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVIEW = "review"  # Vérification manuelle requise


class VerificationCase(Base):
    """Résultat d'une comparaison de pièces d'identité, en attente de revue"""
    __tablename__ = "verification_cases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(Enum(VerificationStatus), default=VerificationStatus.PENDING)

    # Fichiers comparés
    document_path = Column(String(500), nullable=True)
    reference_path = Column(String(500), nullable=True)

    # Résultat de la comparaison
    similarity = Column(Integer, default=0)
    method = Column(String(50), nullable=True)
    is_exact_match = Column(Boolean, default=False)
    is_match = Column(Boolean, default=False)
    recommendation = Column(String(255), nullable=True)
    result_json = Column(Text, nullable=True)

    # Revue administrateur
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    review_note = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relations
    user = relationship("User", back_populates="verification_cases", foreign_keys=[user_id])

    def __repr__(self):
        return f"<VerificationCase {self.id} {self.status.value}>"
