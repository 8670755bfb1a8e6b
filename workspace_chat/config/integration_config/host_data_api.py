import httpx
import pandas as pd
from typing import Any, Dict, List, Optional

from workspace_chat.config.settings import settings
from workspace_chat.config.logger import get_logger
from workspace_chat.config.constants import HYPERCUBE_PATH, HYPERCUBE_PAGE_TOP, HYPERCUBE_PAGE_LEFT
from workspace_chat.utils.errors import SourceFetchError

logger = get_logger("Host API Logger")


class HostDataApi:
    """
    HTTP client for the analytics workspace's object API.

    For every source object it reads the layout and the first data page of
    its hypercube and flattens both into the structure sent as context.
    Connection retries are handled by the transport, not by callers.
    """

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout_seconds: float = None,
        page_width: int = None,
        page_height: int = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        api_key = settings.HOST_API_KEY if api_key is None else api_key
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.page_width = page_width or settings.HYPERCUBE_PAGE_WIDTH
        self.page_height = page_height or settings.HYPERCUBE_PAGE_HEIGHT
        timeout = httpx.Timeout(timeout_seconds or settings.SOURCE_FETCH_TIMEOUT_SECONDS, connect=10.0)
        self.client = httpx.AsyncClient(
            base_url=base_url or settings.HOST_API_URL,
            headers=headers,
            timeout=timeout,
            transport=transport or httpx.AsyncHTTPTransport(retries=3),
        )

    async def aclose(self):
        await self.client.aclose()

    async def get_source_layout(self, source_id: str) -> Dict[str, Any]:
        layout = await self._request(source_id, "GET", f"/objects/{source_id}/layout")
        hypercube = layout.get("qHyperCube") if isinstance(layout, dict) else None
        if not isinstance(hypercube, dict):
            raise SourceFetchError(source_id, f"Layout of {source_id} has no hypercube", kind="malformed_layout")

        pages = await self._request(
            source_id,
            "POST",
            f"/objects/{source_id}/hypercube-data",
            json={
                "path": HYPERCUBE_PATH,
                "pages": [{
                    "qTop": HYPERCUBE_PAGE_TOP,
                    "qLeft": HYPERCUBE_PAGE_LEFT,
                    "qWidth": self.page_width,
                    "qHeight": self.page_height,
                }],
            },
        )
        try:
            matrix = pages[0]["qMatrix"]
        except (KeyError, IndexError, TypeError):
            raise SourceFetchError(source_id, f"Hypercube data of {source_id} has no qMatrix", kind="malformed_layout")

        dimensions = hypercube.get("qDimensionInfo", [])
        measures = hypercube.get("qMeasureInfo", [])
        return {
            "type": layout.get("visualization"),
            "title": layout.get("title"),
            "dimensions": dimensions,
            "measures": measures,
            "data": matrix,
            "records": matrix_to_records(matrix, dimensions, measures),
        }

    async def _request(self, source_id: str, method: str, url: str, json: Any = None) -> Any:
        try:
            resp = await self.client.request(method, url, json=json)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            raise SourceFetchError(source_id, f"Timeout while fetching {source_id}: {e}", kind="timeout")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            kind = "not_found" if status == 404 else "http_error"
            raise SourceFetchError(source_id, f"Host API returned {status} for {source_id}", kind=kind)
        except httpx.HTTPError as e:
            raise SourceFetchError(source_id, f"Transport error for {source_id}: {e}", kind="transport_error")
        except ValueError as e:
            raise SourceFetchError(source_id, f"Invalid JSON for {source_id}: {e}", kind="malformed_layout")


def _cell_value(cell: Any) -> Any:
    if not isinstance(cell, dict):
        return cell
    num = cell.get("qNum")
    if isinstance(num, (int, float)) and not isinstance(num, bool):
        return num
    return cell.get("qText")


def _label(info: Dict[str, Any], fallback: str) -> str:
    return info.get("qFallbackTitle") or fallback


def matrix_to_records(
    matrix: List[List[Any]],
    dimensions: List[Dict[str, Any]],
    measures: List[Dict[str, Any]],
) -> List[Dict[str, Optional[Any]]]:
    """Tabulate a hypercube page as row records keyed by field label."""
    if not matrix:
        return []

    width = max(len(row) for row in matrix)
    labels = [_label(d, f"dimension_{i}") for i, d in enumerate(dimensions)]
    labels += [_label(m, f"measure_{i}") for i, m in enumerate(measures)]
    labels = labels[:width] + [f"column_{i}" for i in range(len(labels), width)]

    rows = [[_cell_value(c) for c in row] + [None] * (width - len(row)) for row in matrix]
    df = pd.DataFrame(rows, columns=labels).astype(object)
    df = df.where(pd.notna(df), None)
    return df.to_dict(orient="records")
