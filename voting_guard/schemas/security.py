"""
Schémas Pydantic pour la surveillance du vote et l'enrôlement facial
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Union
from typing_extensions import Annotated
from datetime import datetime
import enum

from voting_guard.models.voting_session import VotingSessionStatus
from voting_guard.models.security_log import LogType


class ViolationType(str, enum.Enum):
    """Types de violations pendant le vote"""
    MULTI_PERSON = "MULTI_PERSON"
    FACE_MISMATCH = "FACE_MISMATCH"


class SimpleCheckResult(BaseModel):
    """Vérification simple: violation ou non"""
    kind: Literal["simple"] = "simple"
    violation: bool
    violation_type: Optional[str] = Field(None, alias="violationType")
    message: Optional[str] = None

    class Config:
        populate_by_name = True


class DescriptorCheckResult(BaseModel):
    """Vérification par descripteurs: nombre de visages et correspondance"""
    kind: Literal["descriptor"] = "descriptor"
    violation: bool
    violation_type: Optional[str] = Field(None, alias="violationType")
    message: Optional[str] = None
    faces_in_frame: int = Field(0, ge=0, alias="facesInFrame")
    distance: Optional[float] = None
    face_match_score: Optional[float] = Field(None, ge=0.0, le=1.0, alias="faceMatchScore")

    class Config:
        populate_by_name = True


SecurityCheckResult = Annotated[
    Union[SimpleCheckResult, DescriptorCheckResult],
    Field(discriminator="kind")
]


class SecurityCheckResponse(BaseModel):
    """Réponse de l'endpoint de vérification pendant le vote"""
    success: bool = True
    result: SecurityCheckResult
    violation_count: int = Field(0, alias="violationCount")
    is_blocked: bool = Field(False, alias="isBlocked")

    class Config:
        populate_by_name = True


class FaceEnrollRequest(BaseModel):
    """Requête d'enrôlement facial (une ou plusieurs images base64)"""
    images_base64: List[str] = Field(..., min_length=1)


class VotingSessionResponse(BaseModel):
    """Réponse session de vote"""
    id: int
    user_id: int
    election_id: str
    status: VotingSessionStatus
    violation_count: int
    total_checks: int
    last_violation_type: Optional[str]
    started_at: Optional[datetime]
    ended_at: Optional[datetime]

    class Config:
        from_attributes = True


class SecurityLogResponse(BaseModel):
    """Entrée du journal de sécurité"""
    id: int
    user_id: Optional[int]
    voting_session_id: Optional[int]
    log_type: LogType
    message: Optional[str]
    face_score: Optional[float]
    faces_in_frame: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
