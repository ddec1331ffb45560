"""
Service de reconnaissance faciale
"""
import numpy as np
import cv2
import base64
import face_recognition
from typing import List, Optional, Sequence, Tuple
import logging

from voting_guard.config import settings

logger = logging.getLogger(__name__)

DESCRIPTOR_SIZE = 128


class FaceAnalysis:
    """Résultat de l'analyse d'une image: nombre de visages et descripteur"""

    def __init__(self, faces_in_frame: int, descriptor: Optional[np.ndarray] = None):
        self.faces_in_frame = faces_in_frame
        self.descriptor = descriptor

    def __repr__(self):
        return f"<FaceAnalysis faces={self.faces_in_frame}>"


def min_descriptor_distance(
    descriptor: np.ndarray,
    stored_descriptors: Sequence[np.ndarray]
) -> Optional[float]:
    """
    Distance euclidienne minimale entre un descripteur et les descripteurs enrôlés
    Returns:
        None si aucun descripteur n'est enrôlé
    """
    if len(stored_descriptors) == 0:
        return None
    distances = face_recognition.face_distance(np.asarray(stored_descriptors), descriptor)
    return float(np.min(distances))


def distance_to_score(distance: Optional[float], scale: float = None) -> float:
    """
    Convertir une distance en score d'affichage (0 à 1)
    score = 1 - min(1, distance / scale); aucune distance -> 0
    """
    if distance is None:
        return 0.0
    scale = scale or settings.FACE_SCORE_SCALE
    return 1.0 - min(1.0, distance / scale)


class FaceRecognitionService:
    """Service pour la reconnaissance faciale"""

    def __init__(self, threshold: float = 0.6):
        """
        Initialiser le service
        Args:
            threshold: Seuil de similarité (distance). Plus petit = plus similaire.
        """
        self.threshold = threshold

    def decode_image_bytes(self, image_data: bytes) -> Optional[np.ndarray]:
        """
        Décoder des octets d'image (JPEG, PNG...) en array numpy RGB
        """
        try:
            nparr = np.frombuffer(image_data, np.uint8)
            if nparr.size == 0:
                return None

            # Décoder l'image avec OpenCV
            image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

            # Convertir BGR (OpenCV) en RGB (face_recognition)
            if image is not None:
                image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

            return image
        except Exception as e:
            logger.error(f"Erreur de décodage image: {e}")
            return None

    def decode_base64_image(self, image_base64: str) -> Optional[np.ndarray]:
        """
        Décoder une image base64 en array numpy
        """
        try:
            # Retirer le préfixe data:image si présent
            if ',' in image_base64:
                image_base64 = image_base64.split(',')[1]

            return self.decode_image_bytes(base64.b64decode(image_base64))
        except Exception as e:
            logger.error(f"Erreur de décodage base64: {e}")
            return None

    def _resize_image_for_speed(self, image: np.ndarray, max_width: int = 480) -> Tuple[np.ndarray, float]:
        """
        Redimensionner l'image pour accélérer le traitement
        Returns:
            Tuple (image redimensionnée, facteur de scale)
        """
        height, width = image.shape[:2]
        if width > max_width:
            scale = max_width / width
            new_height = int(height * scale)
            resized = cv2.resize(image, (max_width, new_height))
            return resized, scale
        return image, 1.0

    def analyze_frame(self, image: np.ndarray) -> FaceAnalysis:
        """
        Compter les visages et extraire le descripteur si exactement un visage est présent
        """
        small_image, _ = self._resize_image_for_speed(image)

        # Détecter les visages avec le modèle HOG (plus rapide que CNN)
        face_locations = face_recognition.face_locations(small_image, model="hog")

        if len(face_locations) != 1:
            return FaceAnalysis(faces_in_frame=len(face_locations))

        face_encodings = face_recognition.face_encodings(small_image, face_locations)
        if len(face_encodings) == 0:
            return FaceAnalysis(faces_in_frame=1)

        return FaceAnalysis(faces_in_frame=1, descriptor=face_encodings[0])

    def analyze_frame_bytes(self, image_data: bytes) -> FaceAnalysis:
        """Analyser une image encodée (frame JPEG de la caméra)"""
        image = self.decode_image_bytes(image_data)
        if image is None:
            raise ValueError("Image illisible")
        return self.analyze_frame(image)

    def extract_face_encoding(self, image: np.ndarray) -> Optional[np.ndarray]:
        """
        Extraire le descripteur facial d'une image d'enrôlement
        Returns:
            Numpy array de 128 dimensions ou None si pas exactement un visage
        """
        try:
            analysis = self.analyze_frame(image)
            if analysis.faces_in_frame == 0:
                logger.warning("Aucun visage détecté dans l'image")
            elif analysis.faces_in_frame > 1:
                logger.warning(f"Plusieurs visages détectés ({analysis.faces_in_frame})")
            return analysis.descriptor
        except Exception as e:
            logger.error(f"Erreur d'extraction du descripteur facial: {e}")
            return None

    def encode_to_bytes(self, descriptors: Sequence[np.ndarray]) -> bytes:
        """Convertir des descripteurs numpy en bytes pour stockage"""
        return np.asarray(descriptors, dtype=np.float64).tobytes()

    def decode_from_bytes(self, data: bytes) -> List[np.ndarray]:
        """Reconvertir des bytes en liste de descripteurs numpy"""
        flat = np.frombuffer(data, dtype=np.float64)
        return list(flat.reshape(-1, DESCRIPTOR_SIZE))

    def enroll_faces(self, images_base64: Sequence[str]) -> Tuple[Optional[bytes], int, float]:
        """
        Enrôler un ou plusieurs visages à partir d'images base64
        Returns:
            Tuple (descripteurs en bytes ou None, nombre de descripteurs, qualité)
        """
        descriptors = []
        for image_base64 in images_base64:
            image = self.decode_base64_image(image_base64)
            if image is None:
                continue
            encoding = self.extract_face_encoding(image)
            if encoding is not None:
                descriptors.append(encoding)

        if not descriptors:
            return None, 0, 0.0

        # Qualité = proportion d'images exploitables
        quality = len(descriptors) / len(images_base64)

        return self.encode_to_bytes(descriptors), len(descriptors), quality


# Instance globale du service
face_service = FaceRecognitionService(threshold=settings.FACE_MATCH_THRESHOLD)
