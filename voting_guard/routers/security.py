"""
Routes de surveillance pendant le vote
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from voting_guard.config import settings
from voting_guard.database import get_db
from voting_guard.models.user import User, UserRole
from voting_guard.models.voting_session import VotingSession
from voting_guard.routers.auth import get_current_user
from voting_guard.schemas.security import SecurityCheckResponse, VotingSessionResponse
from voting_guard.services.auth_service import get_user_by_id
from voting_guard.services.notification_service import NotificationBroadcaster, get_broadcaster
from voting_guard.services.security_service import security_service

router = APIRouter(prefix="/security", tags=["Surveillance"])


async def read_upload(upload: UploadFile) -> bytes:
    """Lire un fichier téléversé en vérifiant sa taille"""
    data = await upload.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Fichier vide"
        )
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Fichier trop volumineux (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} Mo)"
        )
    return data


@router.post("/voting-session-check", response_model=SecurityCheckResponse)
async def voting_session_check(
    frame: UploadFile = File(...),
    voterId: str = Form(...),
    electionId: str = Form(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Vérifier une frame de la caméra pendant le vote"""
    voter = current_user
    if voterId != str(current_user.id):
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Vérification réservée à l'électeur concerné"
            )
        # Un administrateur vérifie la session de l'électeur désigné
        voter = await get_user_by_id(db, int(voterId)) if voterId.isdigit() else None
        if voter is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Électeur non trouvé"
            )

    frame_bytes = await read_upload(frame)

    return await security_service.check_frame(
        db,
        voter,
        electionId,
        frame_bytes,
        broadcaster=broadcaster
    )


@router.get("/voting-session/{election_id}", response_model=VotingSessionResponse)
async def get_voting_session(
    election_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Statut de surveillance de la session de vote de l'électeur connecté"""
    result = await db.execute(
        select(VotingSession).where(
            VotingSession.user_id == current_user.id,
            VotingSession.election_id == election_id
        )
    )
    session = result.scalar_one_or_none()

    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session de vote non trouvée"
        )

    return session
