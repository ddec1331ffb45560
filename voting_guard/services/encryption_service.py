"""
Chiffrement des descripteurs faciaux stockés en base
Utilise Fernet (AES-128-CBC + HMAC-SHA256) avec une clé dérivée par PBKDF2
"""
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from typing import Optional
import base64
import logging

logger = logging.getLogger(__name__)

KDF_SALT = b'voting_guard_descriptors_v1'
KDF_ITERATIONS = 100000


class DescriptorDecryptionError(ValueError):
    """Descripteurs illisibles: clé incorrecte ou données corrompues"""
    pass


class EncryptionService:
    """Chiffrement/déchiffrement symétrique des profils faciaux"""

    def __init__(self, encryption_key: Optional[str] = None):
        """
        Args:
            encryption_key: Secret à partir duquel la clé Fernet est dérivée.
        """
        if not encryption_key:
            logger.warning("BIOMETRIC_ENCRYPTION_KEY absente - clé par défaut utilisée (NON SÉCURISÉ)")
            encryption_key = "default-encryption-key-change-this"
        self._fernet = Fernet(self._derive_key(encryption_key))

    @staticmethod
    def _derive_key(secret: str) -> bytes:
        """Dériver une clé Fernet de 32 octets à partir d'un secret texte"""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=KDF_SALT,
            iterations=KDF_ITERATIONS,
        )
        return base64.urlsafe_b64encode(kdf.derive(secret.encode()))

    def encrypt(self, data: bytes) -> bytes:
        """Chiffrer des descripteurs sérialisés"""
        encrypted = self._fernet.encrypt(data)
        logger.debug(f"Descripteurs chiffrés: {len(data)} -> {len(encrypted)} bytes")
        return encrypted

    def decrypt(self, encrypted_data: bytes) -> bytes:
        """Déchiffrer des descripteurs sérialisés"""
        try:
            return self._fernet.decrypt(encrypted_data)
        except InvalidToken:
            logger.error("Échec du déchiffrement du profil facial (clé incorrecte ou données corrompues)")
            raise DescriptorDecryptionError("Impossible de déchiffrer le profil facial")


# Instance globale - initialisée avec la clé de config au premier appel
encryption_service = None


def get_encryption_service() -> EncryptionService:
    """
    Retourne l'instance du service de chiffrement
    Lazy initialization pour attendre que la config soit chargée
    """
    global encryption_service

    if encryption_service is None:
        from voting_guard.config import settings
        encryption_service = EncryptionService(settings.BIOMETRIC_ENCRYPTION_KEY)

    return encryption_service
