"""Persistent per-user token cache.

Stores tokens in ``~/.local/share/graphme/token_cache.json`` (XDG) or the
platform-equivalent path returned by
:func:`~graphme.config.get_token_cache_path`. The file is written
atomically with ``0o600`` permissions so that tokens are never
world-readable, even momentarily.

The file holds one :class:`TokenCacheEntry` per (account, client id,
authority) triple. Entries are written after every successful token
acquisition and read back by silent acquisition on the next run.

See Also:
    :class:`~graphme.auth.identity.PublicClient` -- reads and writes entries.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from graphme.config import atomic_write, get_token_cache_path
from graphme.models import Account
from graphme.output import debug

EXPIRY_SKEW = timedelta(minutes=5)
"""Access tokens this close to expiry are treated as expired."""


class TokenCacheEntry(BaseModel):
    """Tokens for one account of one client application at one authority.

    Attributes:
        account: The signed-in principal.
        client_id: Application (client) id the tokens were issued to.
        authority: Authority string the tokens were requested from.
        access_token: Last access token issued.
        refresh_token: Refresh token for silent renewal, if one was issued.
        expires_on: UTC expiry of ``access_token``.
        scopes: Scopes ``access_token`` was granted for.
    """

    account: Account
    client_id: str
    authority: str
    access_token: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    expires_on: datetime
    scopes: list[str] = Field(default_factory=list)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the access token is expired or within :data:`EXPIRY_SKEW` of it."""
        now = now or datetime.now(timezone.utc)
        expires = self.expires_on
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now + EXPIRY_SKEW >= expires

    def covers(self, scopes: list[str]) -> bool:
        """Whether the access token was granted every scope in *scopes*."""
        granted = {s.lower() for s in self.scopes}
        return all(s.lower() in granted for s in scopes)


class _CacheDocument(BaseModel):
    version: int = 1
    entries: list[TokenCacheEntry] = Field(default_factory=list)


class TokenCache:
    """Read/write the token cache file.

    Args:
        path: Cache file location. Defaults to
            :func:`~graphme.config.get_token_cache_path`.

    Example::

        cache = TokenCache()
        cache.save(entry)
        accounts = cache.accounts(client_id, authority)
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or get_token_cache_path()

    @property
    def path(self) -> Path:
        """The filesystem path of the cache file."""
        return self._path

    def load(self) -> list[TokenCacheEntry]:
        """Load every entry from disk.

        Returns:
            The cached entries. An absent or unreadable file yields an
            empty list, which makes silent acquisition fall back to the
            user.
        """
        if not self._path.is_file():
            return []
        try:
            text = self._path.read_text(encoding="utf-8")
            return _CacheDocument.model_validate(json.loads(text)).entries
        except (json.JSONDecodeError, ValidationError, OSError) as exc:
            debug(f"Ignoring unreadable token cache {self._path}: {exc}")
            return []

    def find(self, client_id: str, authority: str) -> list[TokenCacheEntry]:
        """Return the entries issued to *client_id* by *authority*."""
        return [
            e for e in self.load()
            if e.client_id == client_id and e.authority == authority
        ]

    def accounts(self, client_id: str, authority: str) -> list[Account]:
        """Return the cached accounts for *client_id* at *authority*."""
        return [e.account for e in self.find(client_id, authority)]

    def get(
        self, account: Account, client_id: str, authority: str
    ) -> Optional[TokenCacheEntry]:
        """Return the entry for *account*, or ``None`` if it is not cached."""
        for entry in self.find(client_id, authority):
            if entry.account.home_account_id == account.home_account_id:
                return entry
        return None

    def save(self, entry: TokenCacheEntry) -> None:
        """Insert *entry*, replacing any entry for the same account, client and authority.

        Raises:
            OSError: If the file cannot be written.
        """
        entries = [
            e for e in self.load()
            if not _same_slot(e, entry)
        ]
        entries.append(entry)
        self._write(entries)

    def remove(self, username: Optional[str] = None) -> int:
        """Remove entries for *username* (case-insensitive), or every entry.

        Returns:
            The number of entries removed.
        """
        entries = self.load()
        if username is None:
            kept: list[TokenCacheEntry] = []
        else:
            kept = [
                e for e in entries
                if e.account.username.lower() != username.lower()
            ]
        removed = len(entries) - len(kept)
        if removed:
            if kept:
                self._write(kept)
            else:
                self.clear()
        return removed

    def clear(self) -> None:
        """Delete the cache file if it exists."""
        if self._path.is_file():
            self._path.unlink()

    def _write(self, entries: list[TokenCacheEntry]) -> None:
        data = _CacheDocument(entries=entries).model_dump(mode="json")
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)


def _same_slot(a: TokenCacheEntry, b: TokenCacheEntry) -> bool:
    return (
        a.account.home_account_id == b.account.home_account_id
        and a.client_id == b.client_id
        and a.authority == b.authority
    )
