import time
from typing import Any, Callable, Dict

from workspace_chat.config.constants import CHART_ID_PREFIX, CHART_TYPE_ALIASES, SUPPORTED_CHART_TYPES
from workspace_chat.config.integration_config.base import RenderingEngine
from workspace_chat.config.logger import get_logger
from workspace_chat.models.chat_models import ChartHandle
from workspace_chat.utils.errors import VisualizationError

logger = get_logger("API Logger")


def build_chart_definition(viz_spec: Any, chart_id: str) -> Dict[str, Any]:
    """Turn a backend viz spec into the definition handed to the rendering engine."""
    if not isinstance(viz_spec, dict):
        raise VisualizationError(f"Visualization spec must be an object, got {type(viz_spec).__name__}")

    chart_type = viz_spec.get("type")
    if not isinstance(chart_type, str) or not chart_type.strip():
        raise VisualizationError("Visualization spec has no chart type")
    chart_type = chart_type.strip().lower()
    chart_type = CHART_TYPE_ALIASES.get(chart_type, chart_type)
    if chart_type not in SUPPORTED_CHART_TYPES:
        raise VisualizationError(f"Unsupported chart type: {chart_type}")

    dimensions = viz_spec.get("dimensions") or []
    measures = viz_spec.get("measures") or []
    properties = viz_spec.get("properties") or {}
    if not isinstance(dimensions, list) or not isinstance(measures, list):
        raise VisualizationError("Visualization dimensions and measures must be lists")
    if not isinstance(properties, dict):
        raise VisualizationError("Visualization properties must be an object")

    definition = {
        "chart_id": chart_id,
        "chart_type": chart_type,
        "hypercube_def": {
            "qDimensions": dimensions,
            "qMeasures": measures,
        },
        "properties": properties,
    }
    if viz_spec.get("data") is not None:
        definition["data"] = viz_spec["data"]
    return definition


class VisualizationDispatcher:
    """
    Creates and destroys charts through the rendering engine.

    Replacing the active chart is the orchestrator's job: it destroys the
    old handle before asking for a new one.
    """

    def __init__(self, engine: RenderingEngine, clock: Callable[[], float] = time.time):
        self.engine = engine
        self._clock = clock
        self._last_base_id = None
        self._sequence = 0

    def _next_chart_id(self) -> str:
        base_id = f"{CHART_ID_PREFIX}{int(self._clock() * 1000)}"
        # Two charts in the same millisecond get a numeric suffix
        if base_id == self._last_base_id:
            self._sequence += 1
            return f"{base_id}_{self._sequence}"
        self._last_base_id = base_id
        self._sequence = 0
        return base_id

    def prepare(self, viz_spec: Any) -> Dict[str, Any]:
        """Validate the spec and assign the chart id, without touching the engine."""
        return build_chart_definition(viz_spec, self._next_chart_id())

    async def render(self, viz_spec: Any) -> ChartHandle:
        return await self.create(self.prepare(viz_spec))

    async def create(self, definition: Dict[str, Any]) -> ChartHandle:
        try:
            instance = await self.engine.create(definition)
        except Exception as e:
            logger.error(f"Visualization creation error: {e}")
            raise VisualizationError(f"Rendering engine rejected chart: {e}")

        logger.info(f"Rendered {definition['chart_type']} as {definition['chart_id']}")
        return ChartHandle(
            chart_id=definition["chart_id"],
            chart_type=definition["chart_type"],
            instance=instance,
        )

    async def destroy(self, handle: ChartHandle) -> None:
        try:
            await self.engine.destroy(handle.instance)
            logger.info(f"Destroyed chart {handle.chart_id}")
        except Exception as e:
            logger.error(f"Failed to destroy chart {handle.chart_id}: {e}")
