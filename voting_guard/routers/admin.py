"""
Routes d'administration
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from voting_guard.database import get_db
from voting_guard.models.user import User
from voting_guard.models.voting_session import VotingSession, VotingSessionStatus
from voting_guard.models.security_log import SecurityLog, LogType
from voting_guard.routers.auth import get_current_admin
from voting_guard.schemas.notification import NotificationType
from voting_guard.schemas.security import SecurityLogResponse, VotingSessionResponse
from voting_guard.services.notification_service import NotificationBroadcaster, get_broadcaster
from voting_guard.services.security_service import security_service

router = APIRouter(prefix="/admin", tags=["Administration"])


@router.get("/security-logs", response_model=List[SecurityLogResponse])
async def get_security_logs(
    user_id: Optional[int] = None,
    log_type: Optional[LogType] = None,
    limit: int = 100,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Récupérer les journaux de sécurité"""
    query = select(SecurityLog)

    if user_id:
        query = query.where(SecurityLog.user_id == user_id)
    if log_type:
        query = query.where(SecurityLog.log_type == log_type)

    query = query.order_by(SecurityLog.created_at.desc(), SecurityLog.id.desc()).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/voting-sessions", response_model=List[VotingSessionResponse])
async def list_voting_sessions(
    election_id: Optional[str] = None,
    session_status: Optional[VotingSessionStatus] = None,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Lister les sessions de vote surveillées"""
    query = select(VotingSession)

    if election_id:
        query = query.where(VotingSession.election_id == election_id)
    if session_status:
        query = query.where(VotingSession.status == session_status)

    result = await db.execute(query.order_by(VotingSession.started_at.desc()))
    return result.scalars().all()


@router.post("/voters/{user_id}/unblock")
async def unblock_voter(
    user_id: int,
    election_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Débloquer un électeur pour une élection"""
    result = await db.execute(select(User).where(User.id == user_id))
    voter = result.scalar_one_or_none()

    if not voter:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Électeur non trouvé"
        )

    success, message = await security_service.unblock(db, voter, election_id)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=message
        )

    broadcaster.publish(NotificationType.VOTER_UNBLOCKED, {
        "voterId": voter.id,
        "voterName": voter.full_name,
        "electionId": election_id,
    })

    return {"success": True, "message": message}
