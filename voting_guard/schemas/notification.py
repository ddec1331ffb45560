"""
Schémas Pydantic pour les notifications temps réel
"""
from pydantic import BaseModel, Field
from typing import Any, Dict
from datetime import datetime
import enum
import uuid


class NotificationType(str, enum.Enum):
    """Types de notifications diffusées"""
    RULE_VIOLATION = "rule_violation"
    VOTER_BLOCKED = "voter_blocked"
    VOTER_UNBLOCKED = "voter_unblocked"
    INVALID_VOTER = "invalid_voter"
    VERIFICATION_APPROVED = "verification_approved"
    VERIFICATION_REJECTED = "verification_rejected"
    VERIFICATION_REVIEW = "verification_review"
    VOTE_SUBMITTED = "vote_submitted"
    CAMERA_UNAVAILABLE = "camera_unavailable"


class Notification(BaseModel):
    """Notification diffusée à tous les abonnés"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    read: bool = False

    def to_wire(self) -> Dict[str, Any]:
        """Forme JSON envoyée sur le canal"""
        return self.model_dump(mode="json")
