"""
Modèle pour le profil facial d'un électeur
"""
from sqlalchemy import Column, Integer, ForeignKey, LargeBinary, DateTime, Float
from sqlalchemy.orm import relationship
from datetime import datetime

from voting_guard.database import Base


class FaceProfile(Base):
    """
    Stocke les descripteurs faciaux enrôlés (pas les images brutes)
    - descriptors: N vecteurs de 128 dimensions (float64), concaténés puis chiffrés
    """
    __tablename__ = "face_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Descripteurs faciaux (numpy array sérialisé puis chiffré)
    descriptors = Column(LargeBinary, nullable=False)
    descriptor_count = Column(Integer, default=0)
    quality = Column(Float, default=0.0)

    # Métadonnées
    enrolled_at = Column(DateTime, default=datetime.utcnow)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relation
    user = relationship("User", back_populates="face_profile")

    def __repr__(self):
        return f"<FaceProfile user_id={self.user_id} descriptors={self.descriptor_count}>"
