"""Provider endpoints and credential lookup."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from app.core.config import Settings


@dataclass(frozen=True)
class ProviderEndpoint:
    """One OpenAI-compatible chat-completions endpoint."""

    name: str
    base_url: str
    model: str


class CredentialProvider:
    """Base interface for resolving a provider's API key."""

    def get_api_key(self, provider_name: str) -> Optional[str]:
        raise NotImplementedError


class SettingsCredentialProvider(CredentialProvider):
    """Reads API keys from environment-backed settings."""

    def __init__(self, settings: Settings) -> None:
        self._keys: Dict[str, Optional[str]] = {
            settings.primary_provider_name: settings.primary_provider_api_key,
            settings.secondary_provider_name: settings.secondary_provider_api_key,
        }

    def get_api_key(self, provider_name: str) -> Optional[str]:
        key = self._keys.get(provider_name)
        return key.strip() or None if key else None


class StaticCredentialProvider(CredentialProvider):
    def __init__(self, keys: Dict[str, str]) -> None:
        self._keys = dict(keys)

    def get_api_key(self, provider_name: str) -> Optional[str]:
        return self._keys.get(provider_name)


def configured_endpoints(settings: Settings) -> List[ProviderEndpoint]:
    """Endpoints in priority order."""
    return [
        ProviderEndpoint(
            name=settings.primary_provider_name,
            base_url=settings.primary_provider_base_url,
            model=settings.primary_provider_model,
        ),
        ProviderEndpoint(
            name=settings.secondary_provider_name,
            base_url=settings.secondary_provider_base_url,
            model=settings.secondary_provider_model,
        ),
    ]
