"""Shared utilities used across the discovery agent."""

import asyncio
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from discovery_agent.schemas.discovery_schema import QAEntry

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_END = re.compile(r"\s*```$")


def first_name(full_name: Optional[str]) -> str:
    """Return the first word of a name, or an empty string.

    Examples:
        >>> first_name("Sarah Connor")
        'Sarah'
        >>> first_name(None)
        ''
    """
    if not full_name:
        return ""
    parts = full_name.split()
    return parts[0] if parts else ""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence from model output."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _CODE_FENCE_START.sub("", cleaned)
        cleaned = _CODE_FENCE_END.sub("", cleaned)
    return cleaned.strip()


def find_email(text: str) -> Optional[str]:
    """First email address in ``text``, lowercased."""
    match = EMAIL_PATTERN.search(text or "")
    return match.group(0).lower() if match else None


_SPOKEN_EMAIL = re.compile(
    r"([A-Za-z0-9_%+-]+(?:\s+dot\s+[A-Za-z0-9_%+-]+)*)"
    r"\s+at\s+"
    r"([A-Za-z0-9-]+(?:\s+dot\s+[A-Za-z0-9-]+)+)",
    re.IGNORECASE,
)


def spoken_email(text: str) -> Optional[str]:
    """Recover an address spoken as words, e.g. "john dot doe at gmail dot com".

    Examples:
        >>> spoken_email("it's John dot Doe at gmail dot com")
        'john.doe@gmail.com'
    """
    match = _SPOKEN_EMAIL.search(text or "")
    if not match:
        return None
    local = re.sub(r"\s+dot\s+", ".", match.group(1), flags=re.IGNORECASE)
    domain = re.sub(r"\s+dot\s+", ".", match.group(2), flags=re.IGNORECASE)
    return find_email(f"{local}@{domain}")


def format_answers(entries: Iterable[QAEntry]) -> str:
    """Render Q&A entries as "Q: ... A: ..." pairs for prompts."""
    return "; ".join(f"Q: {entry.question} A: {entry.answer}" for entry in entries)


class KeyedLocks:
    """One ``asyncio.Lock`` per key, kept only while a task holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)
