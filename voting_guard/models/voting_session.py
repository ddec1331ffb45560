"""
Modèle pour les sessions de vote surveillées
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from voting_guard.database import Base


class VotingSessionStatus(str, enum.Enum):
    """Statuts d'une session de vote"""
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"  # Nombre maximum de violations atteint
    COMPLETED = "completed"


class VotingSession(Base):
    """Session de vote d'un électeur pour une élection"""
    __tablename__ = "voting_sessions"
    __table_args__ = (
        UniqueConstraint("user_id", "election_id", name="uq_voting_session_user_election"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    election_id = Column(String(100), nullable=False, index=True)

    status = Column(Enum(VotingSessionStatus), default=VotingSessionStatus.IN_PROGRESS)

    # Statistiques de surveillance
    violation_count = Column(Integer, default=0)
    total_checks = Column(Integer, default=0)
    last_violation_type = Column(String(50), nullable=True)

    # Dates
    started_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime, nullable=True)

    # Relations
    user = relationship("User", back_populates="voting_sessions")

    def __repr__(self):
        return f"<VotingSession user={self.user_id} election={self.election_id}>"
