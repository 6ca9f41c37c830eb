"""Psychomotor Vigilance Test engine: session state machine and statistics."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pvt-vigilance")
except PackageNotFoundError:
    __version__ = "unknown"
