"""vidbrief: single-flight video summary and quiz orchestration core."""

from vidbrief.version import __version__

__all__ = ["__version__"]
