from .compose import ComposeOrchestrator
from .engine import ComposeVariant, DockerEngine
from .errors import EngineError, ManifestFetchError, MoltbotClientError

__all__ = [
    "ComposeOrchestrator",
    "ComposeVariant",
    "DockerEngine",
    "EngineError",
    "ManifestFetchError",
    "MoltbotClientError",
]
