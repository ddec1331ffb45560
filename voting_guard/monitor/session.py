"""Live monitoring of a voting session.

``SessionMonitor`` samples one JPEG frame every ``interval`` seconds, has it
evaluated, and feeds the result to ``SessionMonitorState``. Warnings and the
final block are reported to the hosting UI through a ``MonitorListener`` and,
when a broadcaster is given, as notifications.

Checks never overlap: a tick that fires while the previous evaluation is
still running is skipped.
"""

import asyncio
import logging
from typing import Optional

from voting_guard.config import settings
from voting_guard.monitor.camera import FrameSource
from voting_guard.monitor.evaluators import FrameEvaluator
from voting_guard.monitor.listener import MonitorListener
from voting_guard.monitor.state import MonitorEvent, MonitorEventKind, SessionMonitorState
from voting_guard.schemas.notification import NotificationType
from voting_guard.services.notification_service import NotificationBroadcaster

logger = logging.getLogger(__name__)

CAMERA_REQUIRED_MESSAGE = "Camera access required for voting security."
SERVER_BLOCK_REASON = "blocked by server"
CHECK_UNAVAILABLE_MESSAGE = "Security check unavailable, retrying."


class SessionMonitor:
    """Periodic security checks for one voter in one election."""

    def __init__(
        self,
        voter_id: str,
        election_id: str,
        frame_source: FrameSource,
        evaluator: FrameEvaluator,
        listener: MonitorListener,
        broadcaster: Optional[NotificationBroadcaster] = None,
        interval: Optional[float] = None,
        jpeg_quality: Optional[int] = None,
        max_violations: Optional[int] = None
    ):
        self.voter_id = voter_id
        self.election_id = election_id
        self.frame_source = frame_source
        self.evaluator = evaluator
        self.listener = listener
        self.broadcaster = broadcaster
        self.interval = interval if interval is not None else settings.MONITOR_CHECK_INTERVAL_SECONDS
        self.jpeg_quality = jpeg_quality or settings.MONITOR_JPEG_QUALITY
        self.state = SessionMonitorState(max_violations=max_violations or settings.MAX_VIOLATIONS)

        self.skipped_ticks = 0
        self.camera_open = False
        self._loop_task: Optional[asyncio.Task] = None
        self._check_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        """Acquire the camera, load the evaluator and start the timer."""
        if self.is_running:
            return

        try:
            await asyncio.to_thread(self.frame_source.open)
            self.camera_open = True
        except Exception as e:
            # Caméra indisponible: avertissement non bloquant
            logger.warning(f"Camera access error for voter {self.voter_id}: {e}")
            self.listener.on_warning(CAMERA_REQUIRED_MESSAGE)
            self._notify(NotificationType.CAMERA_UNAVAILABLE, {"error": str(e)})

        try:
            await self.evaluator.prepare()
        except Exception as e:
            logger.warning(f"Evaluator preparation failed for voter {self.voter_id}: {e}")

        self._loop_task = asyncio.create_task(self._run())
        logger.info(
            f"Monitoring started for voter {self.voter_id} "
            f"(election {self.election_id}, every {self.interval}s)"
        )

    async def _run(self) -> None:
        while self.state.is_monitoring:
            await asyncio.sleep(self.interval)
            if not self.state.is_monitoring:
                break
            self.tick()

    def tick(self) -> Optional[asyncio.Task]:
        """Launch one check unless the previous one is still in flight."""
        if self._check_task is not None and not self._check_task.done():
            self.skipped_ticks += 1
            logger.debug(f"Previous check still running, tick skipped ({self.skipped_ticks})")
            return None
        self._check_task = asyncio.create_task(self.check_once())
        return self._check_task

    async def check_once(self) -> Optional[MonitorEvent]:
        """Capture, evaluate and apply one frame. Errors skip the check with a warning."""
        if not self.state.is_monitoring:
            return None

        try:
            frame = await asyncio.to_thread(self.frame_source.capture_jpeg, self.jpeg_quality)
            response = await self.evaluator.evaluate(frame, self.voter_id, self.election_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Security check failed for voter {self.voter_id}: {e}")
            # Avertissement transitoire: le compteur de violations ne change pas
            self.listener.on_warning(CHECK_UNAVAILABLE_MESSAGE)
            return None

        if not response.success:
            logger.warning(f"Security check not evaluated: {response.result.message}")
            return None

        if response.is_blocked:
            event = self.state.force_block(response.result.message or SERVER_BLOCK_REASON)
        else:
            event = self.state.apply(response.result)

        await self._dispatch(event, response.result.violation_type)
        return event

    async def _dispatch(self, event: MonitorEvent, violation_type: Optional[str]) -> None:
        if event.kind == MonitorEventKind.WARNING:
            self.listener.on_warning(event.warning.message)
            self._notify(NotificationType.RULE_VIOLATION, {
                "violation": event.warning.message,
                "violationType": violation_type,
                "count": self.state.violation_count,
            })
        elif event.kind == MonitorEventKind.BLOCKED:
            await self.stop()
            self.listener.on_block(event.block)
            self._notify(NotificationType.VOTER_BLOCKED, {
                "violation": event.block.reason,
                "violationType": violation_type,
                "count": event.block.count,
            })

    def _notify(self, type: NotificationType, data: dict) -> None:
        if self.broadcaster is None:
            return
        payload = {"voterId": self.voter_id, "electionId": self.election_id}
        payload.update(data)
        self.broadcaster.publish(type, payload)

    async def stop(self) -> None:
        """Cancel the timer and any pending check, then release the camera."""
        self.state.is_monitoring = False
        current = asyncio.current_task()
        pending = [
            task for task in (self._loop_task, self._check_task)
            if task is not None and task is not current and not task.done()
        ]
        try:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            self._loop_task = None
            await self._release_camera()

    async def _release_camera(self) -> None:
        try:
            await asyncio.to_thread(self.frame_source.release)
        except Exception as e:
            logger.error(f"Failed to release camera for voter {self.voter_id}: {e}")
        finally:
            if self.camera_open:
                logger.info(f"Camera released for voter {self.voter_id}")
            self.camera_open = False

    async def wait(self) -> None:
        """Wait until monitoring ends (block or stop)."""
        if self._loop_task is not None:
            await asyncio.gather(self._loop_task, return_exceptions=True)

    async def __aenter__(self) -> "SessionMonitor":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
