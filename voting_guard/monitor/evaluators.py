"""Frame evaluators used by the session monitor.

- ``HttpSecurityEvaluator`` posts each frame to the server security check.
- ``DescriptorEvaluator`` runs face detection and descriptor matching locally
  against the voter's enrolled descriptors, fetched once at start.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import numpy as np
import requests
from typing_extensions import Protocol

from voting_guard.config import settings
from voting_guard.schemas.security import SecurityCheckResponse
from voting_guard.services.face_service import FaceRecognitionService, face_service
from voting_guard.services.frame_check import check_descriptors

logger = logging.getLogger(__name__)

DescriptorLoader = Callable[[], Union[Sequence[np.ndarray], Awaitable[Sequence[np.ndarray]]]]


class FrameEvaluator(Protocol):
    """Evaluation collaborator of the monitor."""

    async def prepare(self) -> None:
        ...

    async def evaluate(self, frame: bytes, voter_id: str, election_id: str) -> SecurityCheckResponse:
        ...


class HttpSecurityEvaluator:
    """Submit frames as multipart form data to the security check endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.url = url or settings.SECURITY_CHECK_URL
        self.timeout = timeout or settings.SECURITY_CHECK_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    async def prepare(self) -> None:
        pass

    def _post(self, frame: bytes, voter_id: str, election_id: str) -> dict:
        response = self.session.post(
            self.url,
            files={"frame": ("frame.jpg", frame, "image/jpeg")},
            data={"voterId": str(voter_id), "electionId": str(election_id)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def evaluate(self, frame: bytes, voter_id: str, election_id: str) -> SecurityCheckResponse:
        payload = await asyncio.to_thread(self._post, frame, voter_id, election_id)
        return SecurityCheckResponse.model_validate(payload)

    def close(self) -> None:
        self.session.close()


class DescriptorEvaluator:
    """Local face-count and face-match evaluation."""

    def __init__(
        self,
        load_descriptors: DescriptorLoader,
        analyzer: FaceRecognitionService = face_service,
        threshold: Optional[float] = None
    ):
        self._load_descriptors = load_descriptors
        self.analyzer = analyzer
        self.threshold = threshold
        self.descriptors: List[np.ndarray] = []

    async def prepare(self) -> None:
        """Fetch the enrolled descriptors once for the whole session."""
        loaded = self._load_descriptors()
        if inspect.isawaitable(loaded):
            loaded = await loaded
        self.descriptors = [np.asarray(d, dtype=np.float64) for d in (loaded or [])]
        logger.info(f"{len(self.descriptors)} enrolled descriptor(s) loaded")

    async def evaluate(self, frame: bytes, voter_id: str, election_id: str) -> SecurityCheckResponse:
        analysis = await asyncio.to_thread(self.analyzer.analyze_frame_bytes, frame)
        result = check_descriptors(analysis, self.descriptors, self.threshold)
        return SecurityCheckResponse(result=result)
