"""
Routes de vérification d'identité (comparaison de pièces d'identité)
"""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from voting_guard.database import get_db
from voting_guard.models.user import User, UserRole
from voting_guard.models.verification_case import VerificationCase, VerificationStatus
from voting_guard.routers.auth import get_current_user, get_current_admin
from voting_guard.routers.security import read_upload
from voting_guard.schemas.comparison import (
    BatchCompareRequest, DocumentComparisonResponse, ReviewRequest,
    VerificationCaseResponse
)
from voting_guard.services.image_comparison import comparison_summary
from voting_guard.services.notification_service import NotificationBroadcaster, get_broadcaster
from voting_guard.services.verification_service import verification_service

router = APIRouter(prefix="/kyc", tags=["Vérification d'identité"])


async def _get_case_or_404(db: AsyncSession, case_id: int) -> VerificationCase:
    case = await verification_service.get_case(db, case_id)
    if not case:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dossier non trouvé"
        )
    return case


@router.post("/compare", response_model=DocumentComparisonResponse)
async def compare_documents(
    document: UploadFile = File(...),
    reference: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Comparer la pièce d'identité téléversée au document de référence"""
    document_bytes = await read_upload(document)
    reference_bytes = await read_upload(reference)

    case, result = await verification_service.compare_documents(
        db,
        current_user,
        document_bytes,
        reference_bytes,
        document_name=document.filename,
        reference_name=reference.filename,
        broadcaster=broadcaster
    )

    return DocumentComparisonResponse(case_id=case.id, status=case.status, result=result)


@router.post("/batch-compare")
async def batch_compare(
    data: BatchCompareRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Relancer la comparaison sur plusieurs dossiers"""
    results = await verification_service.recompare_cases(db, data.case_ids)

    return {
        "results": [r.model_dump(mode="json", by_alias=True) for r in results],
        "summary": comparison_summary(results)
    }


@router.get("/cases", response_model=List[VerificationCaseResponse])
async def list_cases(
    status_filter: Optional[VerificationStatus] = None,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Lister les dossiers de vérification"""
    return await verification_service.list_cases(db, status_filter)


@router.get("/cases/{case_id}", response_model=VerificationCaseResponse)
async def get_case(
    case_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Récupérer un dossier (le sien, ou n'importe lequel pour un admin)"""
    case = await _get_case_or_404(db, case_id)

    if case.user_id != current_user.id and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès non autorisé à ce dossier"
        )

    return case


@router.post("/cases/{case_id}/approve", response_model=VerificationCaseResponse)
async def approve_case(
    case_id: int,
    data: Optional[ReviewRequest] = None,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Approuver un dossier"""
    case = await _get_case_or_404(db, case_id)
    return await verification_service.review_case(
        db, case, current_user, approved=True,
        note=data.note if data else None,
        broadcaster=broadcaster
    )


@router.post("/cases/{case_id}/reject", response_model=VerificationCaseResponse)
async def reject_case(
    case_id: int,
    data: Optional[ReviewRequest] = None,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Rejeter un dossier"""
    case = await _get_case_or_404(db, case_id)
    return await verification_service.review_case(
        db, case, current_user, approved=False,
        note=data.note if data else None,
        broadcaster=broadcaster
    )
