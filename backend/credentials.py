import logging
from typing import Awaitable, Callable, Optional

from config.settings import settings

from .errors import MissingCredentialError

logger = logging.getLogger(__name__)

KeySelector = Callable[[], Awaitable[Optional[str]]]


class CredentialStore:
    """
    Holds the Gemini API key for the session.

    `selector` is the provider-side selection flow: an async callable that
    resolves to the chosen key (or None if the user backed out).
    """

    def __init__(self, api_key: Optional[str] = None, selector: Optional[KeySelector] = None):
        self._api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.selector = selector

    def has_active_credential(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key.strip() if api_key else None

    async def prompt_for_credential(self) -> None:
        if self.selector is None:
            raise MissingCredentialError("API key selection is not available in this environment.")
        chosen = await self.selector()
        # backing out of the selection keeps whatever key was active
        if chosen and chosen.strip():
            self.set_api_key(chosen)
        logger.info(f"[Credentials] Key selected: {self.has_active_credential()}")

    def require(self) -> str:
        if not self.has_active_credential():
            raise MissingCredentialError(
                "Gemini API key is not configured. Set GEMINI_API_KEY or select a key."
            )
        return self._api_key
