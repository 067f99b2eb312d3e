"""Exception types shared across the package."""


class JukeboxError(Exception):
    """Base class for every error raised by the package."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message