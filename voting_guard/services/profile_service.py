"""
Service de gestion des profils faciaux des électeurs
"""
from typing import List, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import numpy as np
import logging

from voting_guard.models.face_profile import FaceProfile
from voting_guard.models.user import User
from voting_guard.models.security_log import SecurityLog, LogType
from voting_guard.services.face_service import face_service
from voting_guard.services.encryption_service import get_encryption_service

logger = logging.getLogger(__name__)


class ProfileService:
    """Enrôlement et lecture des descripteurs faciaux enrôlés"""

    async def enroll_user(
        self,
        db: AsyncSession,
        user_id: int,
        images_base64: Sequence[str]
    ) -> Tuple[bool, str]:
        """
        Enrôler le profil facial d'un électeur
        """
        descriptors, count, quality = face_service.enroll_faces(images_base64)
        if descriptors is None:
            db.add(SecurityLog(
                user_id=user_id,
                log_type=LogType.ENROLLMENT_FAILED,
                message="Aucun visage exploitable dans les images fournies"
            ))
            await db.commit()
            return False, "Impossible de détecter un visage unique dans les images"

        # Chiffrer les descripteurs avant stockage
        encrypted = get_encryption_service().encrypt(descriptors)

        result = await db.execute(
            select(FaceProfile).where(FaceProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()

        if profile:
            profile.descriptors = encrypted
            profile.descriptor_count = count
            profile.quality = quality
        else:
            db.add(FaceProfile(
                user_id=user_id,
                descriptors=encrypted,
                descriptor_count=count,
                quality=quality
            ))

        user_result = await db.execute(select(User).where(User.id == user_id))
        user = user_result.scalar_one_or_none()
        if user:
            user.is_enrolled = True

        db.add(SecurityLog(
            user_id=user_id,
            log_type=LogType.ENROLLMENT_SUCCESS,
            message=f"Profil facial enrôlé ({count} descripteur(s), qualité {quality:.2f})",
            face_score=quality
        ))
        await db.commit()

        logger.info(f"Profil facial enrôlé pour user_id={user_id}: {count} descripteur(s)")
        return True, "Profil facial enregistré"

    async def load_descriptors(self, db: AsyncSession, user_id: int) -> List[np.ndarray]:
        """
        Descripteurs enrôlés d'un électeur (liste vide si non enrôlé)
        """
        result = await db.execute(
            select(FaceProfile).where(FaceProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            return []

        decrypted = get_encryption_service().decrypt(profile.descriptors)
        return face_service.decode_from_bytes(decrypted)


# Instance globale
profile_service = ProfileService()
