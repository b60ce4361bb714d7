from __future__ import annotations

from examsim.core.config import settings
from examsim.core.errors import NoCredentials


def parse_credentials(raw: str | None) -> list[str]:
    return [x.strip() for x in str(raw or "").split(",") if x.strip()]


class CredentialPool:
    """Round-robin rotation over the configured Gemini API keys.

    The cursor is owned by the pool instance. `next()` never awaits, so on a
    single event loop each call runs atomically and concurrent batches see a
    strictly cyclic sequence without any locking.
    """

    def __init__(self, credentials: list[str]) -> None:
        self._credentials = tuple(credentials)
        self._cursor = 0

    @classmethod
    def from_raw(cls, raw: str | None) -> "CredentialPool":
        return cls(parse_credentials(raw))

    @classmethod
    def from_settings(cls) -> "CredentialPool":
        return cls.from_raw(settings.gemini_api_keys)

    def __len__(self) -> int:
        return len(self._credentials)

    def __bool__(self) -> bool:
        return bool(self._credentials)

    @property
    def cursor(self) -> int:
        return self._cursor

    def next(self) -> str:
        if not self._credentials:
            raise NoCredentials("no Gemini API keys configured")
        credential = self._credentials[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._credentials)
        return credential
