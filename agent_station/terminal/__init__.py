"""PTY-backed terminal sessions shared by every project pane."""

from .backend import PTYBackend, build_backend
from .errors import ResizeIgnored, SpawnError, TerminalError, TerminalIOError, UnknownSession
from .events import OutputChunk, SessionDescriptor, SessionExit, SessionState, Subscription
from .geometry import CellMetrics, Geometry, GeometrySynchronizer, SurfaceGeometry, fit
from .registry import SessionRegistry
from .session import TerminalSession

__all__ = [
    "CellMetrics",
    "Geometry",
    "GeometrySynchronizer",
    "OutputChunk",
    "PTYBackend",
    "ResizeIgnored",
    "SessionDescriptor",
    "SessionExit",
    "SessionRegistry",
    "SessionState",
    "SpawnError",
    "Subscription",
    "SurfaceGeometry",
    "TerminalError",
    "TerminalIOError",
    "TerminalSession",
    "UnknownSession",
    "build_backend",
    "fit",
]
