import asyncio
from typing import AsyncIterator, Iterable, Tuple


def normalize_selection(source_ids: Iterable[str]) -> Tuple[str, ...]:
    """Drop blanks and duplicates, keep selection order."""
    seen = []
    for source_id in source_ids or ():
        source_id = str(source_id).strip()
        if source_id and source_id not in seen:
            seen.append(source_id)
    return tuple(seen)


class SelectionChannel:
    """Inbound stream of selection changes pushed by the host workspace."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def publish(self, source_ids: Iterable[str]) -> None:
        self._queue.put_nowait(normalize_selection(source_ids))

    async def updates(self) -> AsyncIterator[Tuple[str, ...]]:
        while True:
            selection = await self._queue.get()
            try:
                yield selection
            finally:
                self._queue.task_done()

    async def drain(self):
        """Wait until every published selection has been applied."""
        await self._queue.join()
