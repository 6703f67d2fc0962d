"""Session output monitoring.

Capture, buffering, classification and the adaptive monitoring loop.
"""

from __future__ import annotations

from shepherd.monitor.buffer import (
    BufferStats,
    CircularOutputBuffer,
    OutputCompressor,
    truncate_output,
)
from shepherd.monitor.capture import OutputCapture
from shepherd.monitor.classifier import (
    ActivityClassifier,
    extract_command,
    extract_file_name,
)
from shepherd.monitor.detector import IdleErrorDetector
from shepherd.monitor.patterns import PatternLibrary, default_patterns, regex_matcher
from shepherd.monitor.scheduler import MonitoringScheduler, StatusListener
from shepherd.monitor.stats import MonitoringStatsCollector
from shepherd.monitor.terminal import (
    OutputObserver,
    PruneReport,
    TerminalMetrics,
    TerminalMonitor,
)

__all__ = [
    "ActivityClassifier",
    "BufferStats",
    "CircularOutputBuffer",
    "IdleErrorDetector",
    "MonitoringScheduler",
    "MonitoringStatsCollector",
    "OutputCapture",
    "OutputCompressor",
    "OutputObserver",
    "PatternLibrary",
    "PruneReport",
    "StatusListener",
    "TerminalMetrics",
    "TerminalMonitor",
    "default_patterns",
    "extract_command",
    "extract_file_name",
    "regex_matcher",
    "truncate_output",
]
