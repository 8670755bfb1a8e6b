import asyncio
from typing import List, Sequence

from workspace_chat.config.integration_config.base import DataSourceApi
from workspace_chat.config.logger import get_logger
from workspace_chat.models.data_models import SourceQueryResult
from workspace_chat.utils.errors import SourceFetchError

logger = get_logger("API Logger")


class DataAggregator:
    """
    Fetches every selected source at once and waits for all of them.

    One result per requested id; a failing source becomes a result with
    `error` set and never aborts the others. No retries happen here.
    """

    def __init__(self, data_api: DataSourceApi, timeout_seconds: float = None):
        self.data_api = data_api
        self.timeout_seconds = timeout_seconds

    async def fetch_all(self, source_ids: Sequence[str]) -> List[SourceQueryResult]:
        results = await asyncio.gather(*(self._fetch_one(source_id) for source_id in source_ids))

        failed = [r.source_id for r in results if not r.ok]
        logger.info(f"Fetched {len(results) - len(failed)}/{len(results)} sources")
        if failed:
            logger.warning(f"Sources skipped for this turn: {failed}")
        return list(results)

    async def _fetch_one(self, source_id: str) -> SourceQueryResult:
        try:
            payload = await asyncio.wait_for(
                self.data_api.get_source_layout(source_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Timeout while fetching source {source_id}")
            return SourceQueryResult.failed(source_id, "timeout", f"No data after {self.timeout_seconds}s")
        except SourceFetchError as e:
            logger.error(f"Error getting data for object {source_id}: {e}")
            return SourceQueryResult.failed(source_id, e.kind, str(e))
        except Exception as e:
            logger.error(f"Error getting data for object {source_id}: {e}")
            return SourceQueryResult.failed(source_id, "error", str(e))

        if not isinstance(payload, dict):
            logger.error(f"Source {source_id} returned {type(payload).__name__} instead of a layout")
            return SourceQueryResult.failed(source_id, "malformed_layout", "Layout is not an object")

        return SourceQueryResult.succeeded(source_id, payload)
