"""
Test doubles: scripted code strategies and directories that fail on demand.
"""

import asyncio
from typing import Iterable, List

from linkforge_app.directory.strategies import InMemoryLinkDirectory
from linkforge_app.exceptions import DirectoryError, DuplicateShortCodeError
from linkforge_app.services.short_code_strategies import ShortCodeStrategy


class ScriptedCodeStrategy(ShortCodeStrategy):
    """Hands out the given codes in order; codes in `malformed` fail is_valid"""

    def __init__(self, codes: Iterable[str], malformed: Iterable[str] = ()):
        self.codes: List[str] = list(codes)
        self.malformed = set(malformed)
        self.generated: List[str] = []

    def generate(self) -> str:
        code = self.codes.pop(0)
        self.generated.append(code)
        return code

    def is_valid(self, code: str) -> bool:
        return bool(code) and code not in self.malformed


class UnavailableDirectory(InMemoryLinkDirectory):
    """Every lookup fails like a store outage"""

    def __init__(self):
        super().__init__()
        self.lookups = 0

    async def get_by_code(self, code):
        self.lookups += 1
        raise DirectoryError("connection refused")


class SlowDirectory(InMemoryLinkDirectory):
    """Lookups hang for `delay` seconds"""

    def __init__(self, delay: float = 1.0):
        super().__init__()
        self.delay = delay

    async def get_by_code(self, code):
        await asyncio.sleep(self.delay)
        return await super().get_by_code(code)


class FlakyDirectory(InMemoryLinkDirectory):
    """
    Fails the first N calls of selected operations with DirectoryError.

    Use -1 to fail forever.
    """

    def __init__(self, lookup_failures=0, insert_event_failures=0, increment_failures=0):
        super().__init__()
        self.failures = {
            "lookup": lookup_failures,
            "insert_event": insert_event_failures,
            "increment": increment_failures,
        }
        self.calls = {"lookup": 0, "insert_event": 0, "increment": 0}

    def _maybe_fail(self, operation: str):
        self.calls[operation] += 1
        remaining = self.failures[operation]
        if remaining == 0:
            return
        if remaining > 0:
            self.failures[operation] = remaining - 1
        raise DirectoryError(f"{operation} failed")

    async def get_by_code(self, code):
        self._maybe_fail("lookup")
        return await super().get_by_code(code)

    async def insert_click_event(self, link_id, occurred_at, metadata, device_type=None, browser=None):
        self._maybe_fail("insert_event")
        return await super().insert_click_event(link_id, occurred_at, metadata, device_type, browser)

    async def increment_click_count(self, link_id):
        self._maybe_fail("increment")
        return await super().increment_click_count(link_id)


class RacingDirectory(InMemoryLinkDirectory):
    """code_exists never sees the collision; the insert catches it (commit-time uniqueness)"""

    def __init__(self, taken_at_commit: Iterable[str]):
        super().__init__()
        self.taken_at_commit = set(taken_at_commit)

    async def code_exists(self, code):
        return False

    async def insert_link(self, record):
        if record.code in self.taken_at_commit:
            raise DuplicateShortCodeError(record.code)
        return await super().insert_link(record)
