from __future__ import annotations


class BuildError(Exception):
    """Raised when the site cannot be built."""


class DiagramError(BuildError):
    def __init__(self, location: str, message: str) -> None:
        super().__init__(f"{location}: {message}" if location else message)
        self.location = location


class RendererNotFoundError(DiagramError):
    pass


class RendererFailedError(DiagramError):
    def __init__(self, location: str, message: str, returncode: int, stderr: str = "") -> None:
        super().__init__(location, message)
        self.returncode = returncode
        self.stderr = stderr


class MalformedOutputError(DiagramError):
    pass


class ConfigError(BuildError):
    pass
