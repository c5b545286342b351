"""Infrastructure modules for swapbank"""

from .access_control import InMemoryAccessController  # noqa: F401
from .logging_setup import setup_logging  # noqa: F401
from .metrics import MetricsRecorder, RequestStats  # noqa: F401

__all__ = [
	"InMemoryAccessController",
	"MetricsRecorder",
	"RequestStats",
	"setup_logging",
]
