"""
Service de vérification d'identité (KYC) par comparaison de documents
"""
from typing import List, Optional, Sequence, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import asyncio
import logging
import os
import uuid

from voting_guard.config import settings
from voting_guard.models.user import User
from voting_guard.models.verification_case import VerificationCase, VerificationStatus
from voting_guard.models.security_log import SecurityLog, LogType
from voting_guard.schemas.comparison import BatchComparisonResult, ComparisonResult
from voting_guard.schemas.notification import NotificationType
from voting_guard.services.image_comparison import batch_compare_images, compare_images
from voting_guard.services.notification_service import NotificationBroadcaster

logger = logging.getLogger(__name__)


def save_upload(user_id: int, filename: Optional[str], data: bytes) -> str:
    """Enregistrer un document téléversé dans UPLOAD_DIR/kyc/<user_id>/"""
    directory = os.path.join(settings.UPLOAD_DIR, "kyc", str(user_id))
    os.makedirs(directory, exist_ok=True)
    extension = os.path.splitext(filename or "")[1].lower() or ".bin"
    path = os.path.join(directory, f"{uuid.uuid4().hex}{extension}")
    with open(path, "wb") as f:
        f.write(data)
    return path


def status_for_result(result: ComparisonResult) -> VerificationStatus:
    """Statut initial d'un dossier: approuvé si les documents correspondent"""
    if result.success and result.is_match:
        return VerificationStatus.APPROVED
    return VerificationStatus.REVIEW


class VerificationService:
    """Dossiers de vérification d'identité"""

    async def compare_documents(
        self,
        db: AsyncSession,
        user: User,
        document: bytes,
        reference: bytes,
        document_name: Optional[str] = None,
        reference_name: Optional[str] = None,
        broadcaster: Optional[NotificationBroadcaster] = None
    ) -> Tuple[VerificationCase, ComparisonResult]:
        """
        Comparer la pièce d'identité téléversée au document de référence
        et ouvrir un dossier de vérification
        """
        document_path = save_upload(user.id, document_name, document)
        reference_path = save_upload(user.id, reference_name, reference)

        result = await asyncio.to_thread(
            compare_images, document, reference, settings.DOCUMENT_SIMILARITY_THRESHOLD
        )
        status = status_for_result(result)

        case = VerificationCase(
            user_id=user.id,
            status=status,
            document_path=document_path,
            reference_path=reference_path,
            similarity=result.similarity,
            method=result.method,
            is_exact_match=result.is_exact_match,
            is_match=result.is_match,
            recommendation=result.recommendation,
            result_json=result.model_dump_json(by_alias=True)
        )
        db.add(case)
        db.add(SecurityLog(
            user_id=user.id,
            log_type=LogType.DOCUMENT_COMPARED,
            message=f"{result.recommendation} (similarité {result.similarity}%)"
        ))
        await db.commit()
        await db.refresh(case)

        logger.info(
            f"Dossier {case.id} pour user_id={user.id}: {status.value} "
            f"({result.method}, {result.similarity}%)"
        )

        if broadcaster is not None:
            notification_type = (
                NotificationType.VERIFICATION_APPROVED
                if status == VerificationStatus.APPROVED
                else NotificationType.VERIFICATION_REVIEW
            )
            broadcaster.publish(notification_type, {
                "voterId": user.id,
                "voterName": user.full_name,
                "caseId": case.id,
                "similarity": result.similarity,
                "method": result.method,
            })

        return case, result

    async def get_case(self, db: AsyncSession, case_id: int) -> Optional[VerificationCase]:
        result = await db.execute(
            select(VerificationCase).where(VerificationCase.id == case_id)
        )
        return result.scalar_one_or_none()

    async def list_cases(
        self,
        db: AsyncSession,
        status: Optional[VerificationStatus] = None
    ) -> List[VerificationCase]:
        query = select(VerificationCase).order_by(VerificationCase.created_at.desc())
        if status:
            query = query.where(VerificationCase.status == status)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def review_case(
        self,
        db: AsyncSession,
        case: VerificationCase,
        reviewer: User,
        approved: bool,
        note: Optional[str] = None,
        broadcaster: Optional[NotificationBroadcaster] = None
    ) -> VerificationCase:
        """Décision administrateur sur un dossier"""
        case.status = VerificationStatus.APPROVED if approved else VerificationStatus.REJECTED
        case.reviewed_by = reviewer.id
        case.review_note = note
        case.reviewed_at = datetime.utcnow()

        db.add(SecurityLog(
            user_id=case.user_id,
            log_type=LogType.VERIFICATION_APPROVED if approved else LogType.VERIFICATION_REJECTED,
            message=note or f"Dossier {case.id} {'approuvé' if approved else 'rejeté'}"
        ))
        await db.commit()
        await db.refresh(case)

        if broadcaster is not None:
            broadcaster.publish(
                NotificationType.VERIFICATION_APPROVED if approved
                else NotificationType.VERIFICATION_REJECTED,
                {"voterId": case.user_id, "caseId": case.id, "note": note}
            )

        return case

    async def recompare_cases(
        self,
        db: AsyncSession,
        case_ids: Sequence[int]
    ) -> List[BatchComparisonResult]:
        """Relancer la comparaison sur des dossiers existants (en lot)"""
        result = await db.execute(
            select(VerificationCase).where(VerificationCase.id.in_(case_ids))
        )
        cases = {case.id: case for case in result.scalars().all()}

        pairs = []
        for case_id in case_ids:
            case = cases.get(case_id)
            if case is None:
                # Chemin inexistant -> échec isolé dans le lot
                pairs.append((None, "", ""))
                continue
            pairs.append((str(case.user_id), case.document_path, case.reference_path))

        results = await asyncio.to_thread(
            batch_compare_images, pairs, settings.DOCUMENT_SIMILARITY_THRESHOLD
        )

        for case_id, batch_result in zip(case_ids, results):
            case = cases.get(case_id)
            if case is None or not batch_result.success:
                continue
            case.similarity = batch_result.similarity
            case.method = batch_result.method
            case.is_exact_match = batch_result.is_exact_match
            case.is_match = batch_result.is_match
            case.recommendation = batch_result.recommendation
            case.result_json = batch_result.model_dump_json(by_alias=True)
        await db.commit()

        return results


# Instance globale
verification_service = VerificationService()
