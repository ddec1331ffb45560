# Surveillance de la session de vote (côté client)

from voting_guard.monitor.state import (
    BlockInfo, MonitorEvent, MonitorEventKind, MonitorPhase, MonitorWarning,
    SessionMonitorState, Severity
)
from voting_guard.monitor.listener import LoggingListener, MonitorListener
from voting_guard.monitor.camera import FrameSource, OpenCVFrameSource
from voting_guard.monitor.evaluators import DescriptorEvaluator, FrameEvaluator, HttpSecurityEvaluator
from voting_guard.monitor.session import SessionMonitor

__all__ = [
    "BlockInfo",
    "MonitorEvent",
    "MonitorEventKind",
    "MonitorPhase",
    "MonitorWarning",
    "SessionMonitorState",
    "Severity",
    "LoggingListener",
    "MonitorListener",
    "FrameSource",
    "OpenCVFrameSource",
    "DescriptorEvaluator",
    "FrameEvaluator",
    "HttpSecurityEvaluator",
    "SessionMonitor",
]
