"""Rules applied to one monitored video frame.

Shared by the server-side security check and the local descriptor evaluator
of the session monitor:

- exactly one face must be visible, otherwise ``MULTI_PERSON``;
- the face descriptor must be within ``threshold`` (Euclidean distance) of
  at least one enrolled descriptor, otherwise ``FACE_MISMATCH``.
"""

from typing import Optional, Sequence

import numpy as np

from voting_guard.config import settings
from voting_guard.schemas.security import DescriptorCheckResult, SimpleCheckResult, ViolationType
from voting_guard.services.face_service import FaceAnalysis, distance_to_score, min_descriptor_distance

MESSAGE_NO_FACE = "face not visible"
MESSAGE_MULTIPLE_FACES = "multiple faces"
MESSAGE_FACE_MISMATCH = "face mismatch"


def check_face_count(faces_in_frame: int) -> SimpleCheckResult:
    """Face-count rule only, for voters without an enrolled profile."""
    if faces_in_frame == 1:
        return SimpleCheckResult(violation=False)
    return SimpleCheckResult(
        violation=True,
        violation_type=ViolationType.MULTI_PERSON.value,
        message=MESSAGE_NO_FACE if faces_in_frame == 0 else MESSAGE_MULTIPLE_FACES,
    )


def check_descriptors(
    analysis: FaceAnalysis,
    stored_descriptors: Sequence[np.ndarray],
    threshold: Optional[float] = None
) -> DescriptorCheckResult:
    """Evaluate a frame analysis against the enrolled descriptors.

    With no enrolled descriptor the distance is unknown and the frame counts
    as a mismatch.
    """
    threshold = settings.FACE_MATCH_THRESHOLD if threshold is None else threshold

    if analysis.faces_in_frame != 1 or analysis.descriptor is None:
        count_check = check_face_count(analysis.faces_in_frame)
        return DescriptorCheckResult(
            violation=True,
            violation_type=ViolationType.MULTI_PERSON.value,
            message=count_check.message or MESSAGE_NO_FACE,
            faces_in_frame=analysis.faces_in_frame,
        )

    distance = min_descriptor_distance(analysis.descriptor, stored_descriptors)
    score = round(distance_to_score(distance), 2)

    if distance is None or distance > threshold:
        return DescriptorCheckResult(
            violation=True,
            violation_type=ViolationType.FACE_MISMATCH.value,
            message=MESSAGE_FACE_MISMATCH,
            faces_in_frame=1,
            distance=distance,
            face_match_score=score,
        )

    return DescriptorCheckResult(
        violation=False,
        faces_in_frame=1,
        distance=distance,
        face_match_score=score,
    )
