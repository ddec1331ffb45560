"""
Modèle pour les journaux de sécurité
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, Float
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from voting_guard.database import Base


class LogType(str, enum.Enum):
    """Types de logs de sécurité"""
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    ENROLLMENT_SUCCESS = "enrollment_success"
    ENROLLMENT_FAILED = "enrollment_failed"
    SECURITY_CHECK_PASSED = "security_check_passed"
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES = "multiple_faces"
    FACE_MISMATCH = "face_mismatch"
    VOTER_BLOCKED = "voter_blocked"
    VOTER_UNBLOCKED = "voter_unblocked"
    DOCUMENT_COMPARED = "document_compared"
    VERIFICATION_APPROVED = "verification_approved"
    VERIFICATION_REJECTED = "verification_rejected"


class SecurityLog(Base):
    """Journaux de sécurité"""
    __tablename__ = "security_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    voting_session_id = Column(Integer, ForeignKey("voting_sessions.id"), nullable=True)

    log_type = Column(Enum(LogType), nullable=False)
    message = Column(Text, nullable=True)

    # Score facial (si applicable)
    face_score = Column(Float, nullable=True)
    faces_in_frame = Column(Integer, nullable=True)

    # Métadonnées
    ip_address = Column(String(45), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relations
    user = relationship("User", back_populates="security_logs")

    def __repr__(self):
        return f"<SecurityLog {self.log_type.value}>"
