"""
Schémas Pydantic pour la comparaison de documents (KYC)
"""
from pydantic import BaseModel, Field
from typing import Optional, Literal, Dict, Any, List
from datetime import datetime
from voting_guard.models.verification_case import VerificationStatus


ComparisonMethod = Literal["exact_file_hash", "perceptual_hash"]


class ComparisonResult(BaseModel):
    """Résultat d'une comparaison entre deux images"""
    success: bool
    is_exact_match: bool = Field(False, alias="isExactMatch")
    is_match: bool = Field(False, alias="isMatch")
    similarity: int = Field(0, ge=0, le=100)
    method: Optional[ComparisonMethod] = None
    confidence: int = 0
    hamming_distance: Optional[int] = Field(None, ge=0, alias="hammingDistance")
    recommendation: str
    details: Dict[str, Any] = {}
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class BatchComparisonResult(ComparisonResult):
    """Résultat de comparaison associé à l'identifiant de l'électeur"""
    voter_id: Optional[str] = Field(None, alias="voterId")


class BatchCompareRequest(BaseModel):
    """Requête de comparaison en lot sur des dossiers existants"""
    case_ids: List[int]


class ReviewRequest(BaseModel):
    """Décision administrateur sur un dossier"""
    note: Optional[str] = None


class VerificationCaseResponse(BaseModel):
    """Réponse dossier de vérification"""
    id: int
    user_id: int
    status: VerificationStatus
    similarity: int
    method: Optional[str]
    is_exact_match: bool
    is_match: bool
    recommendation: Optional[str]
    review_note: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentComparisonResponse(BaseModel):
    """Réponse de l'endpoint de comparaison"""
    case_id: int
    status: VerificationStatus
    result: ComparisonResult
