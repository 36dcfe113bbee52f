"""agentturn - turn execution, history shaping and checkpointing for tool-using agents."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("agentturn")
except PackageNotFoundError:
    __version__ = "0.0.0+local"
__app_name__ = "agentturn"
