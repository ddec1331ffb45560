import asyncio

from voting_guard.monitor.camera import CameraUnavailableError, FrameCaptureError
from voting_guard.monitor.evaluators import DescriptorEvaluator, HttpSecurityEvaluator
from voting_guard.monitor.session import CAMERA_REQUIRED_MESSAGE, CHECK_UNAVAILABLE_MESSAGE, SessionMonitor
from voting_guard.monitor.state import MonitorEventKind
from voting_guard.schemas.notification import NotificationType
from voting_guard.schemas.security import DescriptorCheckResult, SecurityCheckResponse, SimpleCheckResult
from voting_guard.services.face_service import FaceAnalysis
from voting_guard.services.notification_service import NotificationBroadcaster
from tests.conftest import random_descriptor


def response(violation=False, message=None, violation_type=None, success=True, is_blocked=False):
    return SecurityCheckResponse(
        success=success,
        result=SimpleCheckResult(violation=violation, violation_type=violation_type, message=message),
        is_blocked=is_blocked,
    )


MISMATCH = response(True, "face mismatch", "FACE_MISMATCH")
CLEAN = response()


class FakeFrameSource:

    def __init__(self, fail_open=False, fail_capture=False):
        self.fail_open = fail_open
        self.fail_capture = fail_capture
        self.opened = 0
        self.released = 0

    def open(self):
        self.opened += 1
        if self.fail_open:
            raise CameraUnavailableError("no camera")

    def capture_jpeg(self, quality):
        if self.fail_capture:
            raise FrameCaptureError("read failed")
        return b"jpeg-frame"

    def release(self):
        self.released += 1


class ScriptedEvaluator:
    """Renvoie les réponses dans l'ordre; la dernière est répétée"""

    def __init__(self, *responses, gate=None, error=None):
        self.responses = list(responses) or [CLEAN]
        self.gate = gate
        self.error = error
        self.prepared = 0
        self.frames = []

    async def prepare(self):
        self.prepared += 1

    async def evaluate(self, frame, voter_id, election_id):
        self.frames.append((frame, voter_id, election_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class RecordingListener:

    def __init__(self):
        self.warnings = []
        self.blocks = []

    def on_warning(self, message):
        self.warnings.append(message)

    def on_block(self, info):
        self.blocks.append(info)


def make_monitor(evaluator, source=None, broadcaster=None, interval=0.01):
    return SessionMonitor(
        voter_id="42",
        election_id="election-2026",
        frame_source=source or FakeFrameSource(),
        evaluator=evaluator,
        listener=RecordingListener(),
        broadcaster=broadcaster,
        interval=interval,
    )


async def test_three_violations_block_the_session():
    broadcaster = NotificationBroadcaster()
    queue = broadcaster.subscribe()
    source = FakeFrameSource()
    monitor = make_monitor(ScriptedEvaluator(MISMATCH), source=source, broadcaster=broadcaster)

    events = [await monitor.check_once() for _ in range(3)]

    assert [e.kind for e in events] == [
        MonitorEventKind.WARNING,
        MonitorEventKind.WARNING,
        MonitorEventKind.BLOCKED,
    ]
    assert monitor.listener.warnings == [
        "Warning 1: face mismatch. Please follow the rules.",
        "Warning 2: face mismatch. Next violation will block your vote.",
    ]
    assert len(monitor.listener.blocks) == 1
    assert monitor.listener.blocks[0].reason == "face mismatch"
    assert monitor.listener.blocks[0].count == 3
    assert not monitor.state.is_monitoring
    assert source.released == 1

    types = [queue.get_nowait().type for _ in range(queue.qsize())]
    assert types == [
        NotificationType.RULE_VIOLATION,
        NotificationType.RULE_VIOLATION,
        NotificationType.VOTER_BLOCKED,
    ]


async def test_no_check_after_block():
    evaluator = ScriptedEvaluator(MISMATCH)
    monitor = make_monitor(evaluator)
    for _ in range(3):
        await monitor.check_once()

    assert await monitor.check_once() is None
    assert len(evaluator.frames) == 3
    assert len(monitor.listener.blocks) == 1


async def test_frames_are_sent_with_voter_and_election():
    evaluator = ScriptedEvaluator(CLEAN)
    monitor = make_monitor(evaluator)

    event = await monitor.check_once()

    assert event.kind == MonitorEventKind.CLEARED
    assert evaluator.frames == [(b"jpeg-frame", "42", "election-2026")]


async def test_tick_is_skipped_while_a_check_is_in_flight():
    gate = asyncio.Event()
    evaluator = ScriptedEvaluator(CLEAN, gate=gate)
    monitor = make_monitor(evaluator)

    first = monitor.tick()
    await asyncio.sleep(0)
    assert monitor.tick() is None
    assert monitor.tick() is None
    assert monitor.skipped_ticks == 2

    gate.set()
    await first
    second = monitor.tick()
    assert second is not None
    await second
    assert len(evaluator.frames) == 2


async def test_evaluation_error_warns_without_counting():
    monitor = make_monitor(ScriptedEvaluator(MISMATCH))
    await monitor.check_once()
    warning = monitor.state.current_warning

    monitor.evaluator.error = ConnectionError("server down")
    assert await monitor.check_once() is None

    assert monitor.state.violation_count == 1
    assert monitor.state.current_warning == warning
    assert monitor.listener.warnings[-1] == CHECK_UNAVAILABLE_MESSAGE
    assert monitor.state.is_monitoring


async def test_capture_error_skips_the_check():
    evaluator = ScriptedEvaluator(MISMATCH)
    monitor = make_monitor(evaluator, source=FakeFrameSource(fail_capture=True))

    assert await monitor.check_once() is None
    assert evaluator.frames == []
    assert monitor.state.violation_count == 0
    assert monitor.listener.warnings == [CHECK_UNAVAILABLE_MESSAGE]


async def test_unsuccessful_check_is_not_counted():
    monitor = make_monitor(ScriptedEvaluator(response(False, "frame could not be read", success=False)))

    assert await monitor.check_once() is None
    assert monitor.state.violation_count == 0


async def test_server_side_block_stops_monitoring():
    blocked = response(True, "You have been blocked from voting due to repeated violations.", is_blocked=True)
    source = FakeFrameSource()
    monitor = make_monitor(ScriptedEvaluator(blocked), source=source)

    event = await monitor.check_once()

    assert event.kind == MonitorEventKind.BLOCKED
    assert monitor.listener.blocks[0].reason.startswith("You have been blocked")
    assert source.released == 1


async def test_camera_failure_warns_and_keeps_monitoring():
    broadcaster = NotificationBroadcaster()
    queue = broadcaster.subscribe()
    source = FakeFrameSource(fail_open=True)
    evaluator = ScriptedEvaluator(CLEAN)
    monitor = make_monitor(evaluator, source=source, broadcaster=broadcaster, interval=60)

    await monitor.start()
    try:
        assert monitor.listener.warnings == [CAMERA_REQUIRED_MESSAGE]
        assert not monitor.camera_open
        assert monitor.is_running
        assert evaluator.prepared == 1
        assert queue.get_nowait().type == NotificationType.CAMERA_UNAVAILABLE
    finally:
        await monitor.stop()

    assert not monitor.is_running


async def test_stop_cancels_pending_check_and_releases_camera():
    gate = asyncio.Event()
    source = FakeFrameSource()
    monitor = make_monitor(ScriptedEvaluator(MISMATCH, gate=gate), source=source, interval=60)

    await monitor.start()
    assert monitor.camera_open
    pending = monitor.tick()
    await asyncio.sleep(0)

    await monitor.stop()

    assert pending.cancelled()
    assert source.released == 1
    assert not monitor.camera_open
    assert monitor.state.violation_count == 0


async def test_timer_runs_until_blocked():
    source = FakeFrameSource()
    async with make_monitor(ScriptedEvaluator(CLEAN, MISMATCH), source=source) as monitor:
        await asyncio.wait_for(monitor.wait(), timeout=5)

    assert monitor.state.violation_count == 3
    assert len(monitor.listener.warnings) == 2
    assert len(monitor.listener.blocks) == 1
    assert source.opened == 1
    assert source.released >= 1


class FakeAnalyzer:

    def __init__(self, analysis):
        self.analysis = analysis

    def analyze_frame_bytes(self, frame):
        return self.analysis


async def test_descriptor_evaluator_loads_descriptors_once():
    reference = random_descriptor(3)
    loads = []

    async def load():
        loads.append(1)
        return [reference]

    evaluator = DescriptorEvaluator(load, analyzer=FakeAnalyzer(FaceAnalysis(1, reference)))
    await evaluator.prepare()

    first = await evaluator.evaluate(b"frame", "42", "e")
    second = await evaluator.evaluate(b"frame", "42", "e")

    assert loads == [1]
    assert isinstance(first.result, DescriptorCheckResult)
    assert not first.result.violation
    assert second.result.face_match_score == 1.0


async def test_descriptor_evaluator_without_profile_reports_mismatch():
    evaluator = DescriptorEvaluator(lambda: [], analyzer=FakeAnalyzer(FaceAnalysis(1, random_descriptor(3))))
    await evaluator.prepare()

    result = (await evaluator.evaluate(b"frame", "42", "e")).result
    assert result.violation_type == "FACE_MISMATCH"


class FakeHttpResponse:

    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeHttpSession:

    def __init__(self, payload):
        self.headers = {}
        self.payload = payload
        self.requests = []
        self.closed = False

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        return FakeHttpResponse(self.payload)

    def close(self):
        self.closed = True


async def test_http_evaluator_posts_multipart_frame():
    session = FakeHttpSession({
        "success": True,
        "result": {"kind": "simple", "violation": True, "violationType": "MULTI_PERSON", "message": "multiple faces"},
        "violationCount": 1,
        "isBlocked": False,
    })
    evaluator = HttpSecurityEvaluator(url="http://server/check", token="abc", session=session)

    result = await evaluator.evaluate(b"jpeg", 42, "election-2026")
    evaluator.close()

    url, kwargs = session.requests[0]
    assert url == "http://server/check"
    assert kwargs["files"]["frame"] == ("frame.jpg", b"jpeg", "image/jpeg")
    assert kwargs["data"] == {"voterId": "42", "electionId": "election-2026"}
    assert session.headers["Authorization"] == "Bearer abc"
    assert result.result.violation_type == "MULTI_PERSON"
    assert result.violation_count == 1
    assert session.closed


async def test_block_reason_is_the_last_violation():
    evaluator = ScriptedEvaluator(
        response(True, "face not visible", "MULTI_PERSON"),
        response(True, "multiple faces", "MULTI_PERSON"),
        response(True, "face mismatch", "FACE_MISMATCH"),
    )
    monitor = make_monitor(evaluator)

    for _ in range(3):
        await monitor.check_once()

    assert monitor.state.phase.value == "blocked"
    assert monitor.state.violation_count == 3
    assert not monitor.state.is_monitoring
    assert [(b.reason, b.count) for b in monitor.listener.blocks] == [("face mismatch", 3)]


async def test_stop_releases_camera_after_failed_evaluation():
    source = FakeFrameSource()
    monitor = make_monitor(ScriptedEvaluator(error=RuntimeError("boom")), source=source, interval=60)

    await monitor.start()
    await monitor.tick()
    await monitor.stop()

    assert source.released == 1
    assert not monitor.is_running
