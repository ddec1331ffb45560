"""
Service de vérification de sécurité pendant le vote
Évalue une frame de la caméra et applique la règle des 3 violations
"""
from typing import Optional, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import asyncio
import logging

from voting_guard.config import settings
from voting_guard.models.user import User
from voting_guard.models.voting_session import VotingSession, VotingSessionStatus
from voting_guard.models.security_log import SecurityLog, LogType
from voting_guard.schemas.notification import NotificationType
from voting_guard.schemas.security import (
    SecurityCheckResponse, SimpleCheckResult, ViolationType
)
from voting_guard.services.face_service import face_service
from voting_guard.services.frame_check import MESSAGE_NO_FACE, check_descriptors, check_face_count
from voting_guard.services.notification_service import NotificationBroadcaster
from voting_guard.services.profile_service import profile_service

logger = logging.getLogger(__name__)

MESSAGE_INVALID_FRAME = "frame could not be read"
MESSAGE_BLOCKED = "You have been blocked from voting due to repeated violations."


def _violation_log_type(result) -> LogType:
    if result.violation_type == ViolationType.FACE_MISMATCH.value:
        return LogType.FACE_MISMATCH
    if getattr(result, "faces_in_frame", None) == 0 or result.message == MESSAGE_NO_FACE:
        return LogType.NO_FACE_DETECTED
    return LogType.MULTIPLE_FACES


class SecurityService:
    """Vérification des frames envoyées pendant une session de vote"""

    def __init__(self, max_violations: Optional[int] = None):
        self.max_violations = max_violations or settings.MAX_VIOLATIONS

    async def get_or_create_session(
        self,
        db: AsyncSession,
        user_id: int,
        election_id: str
    ) -> VotingSession:
        """Session de vote de l'électeur pour l'élection (créée au premier contrôle)"""
        result = await db.execute(
            select(VotingSession).where(
                VotingSession.user_id == user_id,
                VotingSession.election_id == election_id
            )
        )
        session = result.scalar_one_or_none()
        if session is None:
            session = VotingSession(
                user_id=user_id,
                election_id=election_id,
                status=VotingSessionStatus.IN_PROGRESS,
                violation_count=0,
                total_checks=0
            )
            db.add(session)
            await db.flush()
        return session

    async def record_check(self, db: AsyncSession, session: VotingSession, result):
        """Incrémenter les compteurs de la session en une seule requête UPDATE"""
        values = {"total_checks": VotingSession.total_checks + 1}
        if result.violation:
            values["violation_count"] = VotingSession.violation_count + 1
            values["last_violation_type"] = result.violation_type

        await db.execute(
            update(VotingSession)
            .where(VotingSession.id == session.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        # Relire les valeurs écrites par les requêtes concurrentes
        await db.refresh(session)

    async def block_session(
        self,
        db: AsyncSession,
        session: VotingSession,
        user: User,
        reason: str
    ):
        """Bloquer le vote d'un électeur après trop de violations"""
        session.status = VotingSessionStatus.BLOCKED
        session.ended_at = datetime.utcnow()
        user.is_blocked = True

        db.add(SecurityLog(
            user_id=user.id,
            voting_session_id=session.id,
            log_type=LogType.VOTER_BLOCKED,
            message=f"Vote bloqué après {session.violation_count} violations: {reason}"
        ))
        logger.warning(
            f"Électeur {user.id} bloqué pour l'élection {session.election_id} "
            f"({session.violation_count} violations)"
        )

    async def check_frame(
        self,
        db: AsyncSession,
        user: User,
        election_id: str,
        frame: bytes,
        broadcaster: Optional[NotificationBroadcaster] = None
    ) -> SecurityCheckResponse:
        """
        Évaluer une frame et mettre à jour le compteur de violations de la session
        """
        session = await self.get_or_create_session(db, user.id, election_id)

        if session.status == VotingSessionStatus.BLOCKED:
            return SecurityCheckResponse(
                success=True,
                result=SimpleCheckResult(violation=True, message=MESSAGE_BLOCKED),
                violation_count=session.violation_count,
                is_blocked=True
            )

        try:
            analysis = await asyncio.to_thread(face_service.analyze_frame_bytes, frame)
        except Exception as e:
            logger.warning(f"Frame illisible pour l'électeur {user.id}: {e}")
            return SecurityCheckResponse(
                success=False,
                result=SimpleCheckResult(violation=False, message=MESSAGE_INVALID_FRAME),
                violation_count=session.violation_count,
                is_blocked=False
            )

        stored = await profile_service.load_descriptors(db, user.id)
        if stored:
            result = check_descriptors(analysis, stored)
        else:
            result = check_face_count(analysis.faces_in_frame)

        await self.record_check(db, session, result)

        if not result.violation:
            db.add(SecurityLog(
                user_id=user.id,
                voting_session_id=session.id,
                log_type=LogType.SECURITY_CHECK_PASSED,
                face_score=getattr(result, "face_match_score", None),
                faces_in_frame=analysis.faces_in_frame
            ))
            await db.commit()
            return SecurityCheckResponse(
                result=result,
                violation_count=session.violation_count,
                is_blocked=False
            )

        # Violation - le compteur TOTAL a été incrémenté (jamais réinitialisé)
        db.add(SecurityLog(
            user_id=user.id,
            voting_session_id=session.id,
            log_type=_violation_log_type(result),
            message=result.message,
            face_score=getattr(result, "face_match_score", None),
            faces_in_frame=analysis.faces_in_frame
        ))

        notification_data = {
            "voterId": user.id,
            "voterName": user.full_name,
            "electionId": election_id,
            "violation": result.message,
            "violationType": result.violation_type,
            "count": session.violation_count,
        }

        is_blocked = session.violation_count >= self.max_violations
        if is_blocked:
            await self.block_session(db, session, user, result.message)

        await db.commit()

        if broadcaster is not None:
            broadcaster.publish(NotificationType.RULE_VIOLATION, notification_data)
            if is_blocked:
                broadcaster.publish(NotificationType.VOTER_BLOCKED, notification_data)

        return SecurityCheckResponse(
            result=result,
            violation_count=session.violation_count,
            is_blocked=is_blocked
        )

    async def unblock(self, db: AsyncSession, user: User, election_id: str) -> Tuple[bool, str]:
        """Débloquer un électeur (décision administrateur)"""
        result = await db.execute(
            select(VotingSession).where(
                VotingSession.user_id == user.id,
                VotingSession.election_id == election_id
            )
        )
        session = result.scalar_one_or_none()
        if session is None:
            return False, "Session de vote non trouvée"

        session.status = VotingSessionStatus.IN_PROGRESS
        session.violation_count = 0
        session.ended_at = None
        user.is_blocked = False
        db.add(SecurityLog(
            user_id=user.id,
            voting_session_id=session.id,
            log_type=LogType.VOTER_UNBLOCKED,
            message="Électeur débloqué par un administrateur"
        ))
        await db.commit()
        return True, "Électeur débloqué"


# Instance globale
security_service = SecurityService()
