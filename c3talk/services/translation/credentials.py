"""
Provider credentials

Resolves API keys for both providers from settings (environment / .env),
caching what was found. A missing key only disables its own provider.
"""

from typing import Dict, Optional

from c3talk.core.config import Settings, settings as default_settings
from c3talk.core.errors import MissingCredentialError
from c3talk.core.logging import get_logger, key_fingerprint

logger = get_logger(__name__)

PRIMARY = "gemini"
SECONDARY = "openrouter"

_ENV_HINTS = {
    PRIMARY: "GEMINI_API_KEY",
    SECONDARY: "OPENROUTER_API_KEY",
}


class CredentialResolver:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._cache: Dict[str, Optional[str]] = {}

    def _lookup(self, provider: str) -> Optional[str]:
        if provider == PRIMARY:
            raw = self.settings.gemini_api_key
        elif provider == SECONDARY:
            raw = self.settings.openrouter_api_key
        else:
            raise ValueError(f"Unknown provider: {provider}")
        value = raw.strip() if isinstance(raw, str) else ""
        return value or None

    def get(self, provider: str) -> Optional[str]:
        if provider not in self._cache:
            self._cache[provider] = self._lookup(provider)
        return self._cache[provider]

    def require(self, provider: str) -> str:
        """Return the key or fail fast with a fallback-eligible error"""
        key = self.get(provider)
        if not key:
            raise MissingCredentialError(
                f"{provider} API key is missing; set {_ENV_HINTS.get(provider, 'the API key')}.",
                provider=provider,
            )
        return key

    def fingerprint(self, provider: str) -> str:
        return key_fingerprint(self.get(provider))

    def validate(self) -> Dict[str, bool]:
        """Startup check: report which providers are usable"""
        available = {name: self.get(name) is not None for name in (PRIMARY, SECONDARY)}
        for name, ok in available.items():
            if ok:
                logger.info(f"{name} credential loaded (key: {self.fingerprint(name)})")
            else:
                logger.warning(f"{name} credential missing; provider disabled until configured")
        return available

    def clear(self) -> None:
        self._cache.clear()
