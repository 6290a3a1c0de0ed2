# backend/errors.py


class DiagramStudioError(Exception):
    """Base class for every error raised by the backend."""


class MissingCredentialError(DiagramStudioError):
    """No Gemini API key is active."""


class ImageGenerationError(DiagramStudioError):
    """The image model failed or returned no image."""


class InvalidTransitionError(DiagramStudioError):
    """A state transition was rejected; the state is unchanged."""
