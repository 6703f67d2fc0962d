"""Default values shared by configuration and components.

Components accept these as keyword defaults so they can be constructed
without a full :class:`~shepherd.config.ShepherdConfig`, mostly in tests.
"""

from __future__ import annotations

# =============================================================================
# Capture
# =============================================================================

#: Seconds allowed for one capture of a session's visible text
CAPTURE_TIMEOUT_SECONDS: float = 3.0

#: Retries after the first failed capture attempt
CAPTURE_RETRIES: int = 2

#: Fixed delay between capture attempts
CAPTURE_BACKOFF_SECONDS: float = 1.0

# =============================================================================
# Buffering and truncation
# =============================================================================

#: Entries kept per session in the circular output buffer
BUFFER_CAPACITY: int = 200

#: Items longer than this (in characters) are compressed before storage
COMPRESSION_THRESHOLD: int = 1000

#: Compressed text above this fraction of the threshold is reduced further
COMPRESSION_KEEP_RATIO: float = 0.8

#: Important-line filtering is used only below this fraction of all lines
IMPORTANT_LINE_FRACTION: float = 0.7

#: Keywords that mark a line worth keeping when output is reduced
IMPORTANCE_KEYWORDS: tuple[str, ...] = (
    "error",
    "warning",
    "success",
    "completed",
    "failed",
    "creating",
    "writing",
    "executing",
    "function",
    "class",
    "import",
    "export",
)

#: Line cap applied to raw captured text
MAX_OUTPUT_LINES: int = 200

#: Character budget per kept line for single-line pathological output
CHARS_PER_LINE: int = 100

TRUNCATION_MARKER: str = "... [truncated for performance]"

# =============================================================================
# Detection
# =============================================================================

#: Seconds without new activity before a session counts as idle
IDLE_TIMEOUT_SECONDS: float = 300.0

#: Lines inspected when new output is a redraw rather than an append
RECENT_LINES: int = 200

#: Maximum length of the excerpt used in activity descriptions
DESCRIPTION_LENGTH: int = 100

# =============================================================================
# Monitoring
# =============================================================================

ACTIVE_INTERVAL_SECONDS: float = 10.0
IDLE_INTERVAL_SECONDS: float = 30.0

#: Consecutive failures after which a session is reported offline
MAX_RETRIES: int = 3

#: A fallback may reuse the last known status this long after a good check
FALLBACK_GRACE_SECONDS: float = 60.0

#: Upper bound on the interval used while capture is failing everywhere
DEGRADED_INTERVAL_CEILING_SECONDS: float = 60.0

SLOW_CHECK_MS: float = 5000.0
FAST_CHECK_MS: float = 1000.0
INTERVAL_SCALE_UP: float = 1.2
INTERVAL_SCALE_DOWN: float = 0.9
ACTIVE_INTERVAL_FLOOR_SECONDS: float = 5.0
ACTIVE_INTERVAL_CEILING_SECONDS: float = 30.0
IDLE_INTERVAL_FLOOR_SECONDS: float = 15.0
IDLE_INTERVAL_CEILING_SECONDS: float = 60.0

#: Error states older than this are cleared by pruning
MAX_ERROR_AGE_SECONDS: float = 600.0

#: Tick durations kept for the rolling average
DURATION_WINDOW: int = 100

# =============================================================================
# Memory pressure
# =============================================================================

MAX_ACTIVITY_AGE_SECONDS: float = 2 * 60 * 60
HIGH_MEMORY_BYTES: int = 50 * 1024 * 1024
CRITICAL_MEMORY_BYTES: int = 100 * 1024 * 1024

# =============================================================================
# Tasks
# =============================================================================

DISPATCH_SESSION: str = "president"
RESET_COMMAND: str = "/clear"
RATE_LIMIT_FALLBACK_SECONDS: float = 60 * 60
STUCK_AFTER_SECONDS: float = 60 * 60
QUEUE_INTERVAL_SECONDS: float = 15.0
PROJECT_SLUG_LENGTH: int = 30
MAX_RESUME_ARTIFACTS: int = 10

#: Regexes (case-insensitive) identifying a rate-limit message
RATE_LIMIT_SIGNATURES: tuple[str, ...] = (
    r"Claude\s*usage\s*limit\s*reached",
    r"usage\s*limit\s*reached\.?\s*Your\s*limit\s*will\s*reset",
    r"rate\s*limit\s*(?:reached|exceeded)",
)

#: Regexes (case-insensitive) marking a task as finished in session output
COMPLETION_PATTERNS: tuple[str, ...] = (
    r"\b(?:task|project|work)(?:\s+is)?\s+(?:completed|finished|done|ready)\b",
    r"\b(?:all|everything)(?:\s+tasks?)?(?:\s+is|\s+are)?\s+"
    r"(?:completed|finished|done|ready)\b",
    r"\b(?:successfully|completely)\s+(?:completed|finished|implemented)\b",
    r"\b(?:project|system|application)\s+is\s+(?:working|running|operational)\b",
    r"\b(?:testing|verification)\s+(?:completed|passed|successful)\b",
    r"\b(?:deliverables?|output|result)\s+(?:are\s+|is\s+)?"
    r"(?:completed|ready|generated)\b",
    r"[✅🎉].*\b(?:done|completed)\b",
    r"\b(?:done|completed)\b.*[✅🎉]",
)

#: Regexes (case-insensitive) naming the project a session works in
PROJECT_NAME_PATTERNS: tuple[str, ...] = (
    r"project\s+name[:\s]*([a-zA-Z0-9\-_]+)",
    r"working\s+directory[:\s]*workspace/([a-zA-Z0-9\-_]+)",
)

ARTIFACT_SUFFIXES: tuple[str, ...] = (
    ".html",
    ".css",
    ".js",
    ".ts",
    ".py",
    ".json",
    ".md",
)

REQUIRED_MARKERS: tuple[str, ...] = (
    "worker1_done.txt",
    "worker2_done.txt",
    "worker3_done.txt",
)
