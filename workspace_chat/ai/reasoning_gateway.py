import json
import httpx
from typing import Any, Dict

from workspace_chat.config.constants import RESPONSE_ERROR_FIELD, RESPONSE_TEXT_FIELDS, RESPONSE_VISUALIZATION_FIELDS
from workspace_chat.config.logger import get_logger
from workspace_chat.config.settings import settings
from workspace_chat.models.chat_models import (
    Failure,
    FailureReason,
    ReasoningResponse,
    RequestPayload,
    TextOnly,
    TextWithVisualization,
)
from workspace_chat.utils.errors import MalformedResponseError, NetworkError

logger = get_logger("AI Logger")


def _first_present(body: Dict[str, Any], fields) -> Any:
    for field in fields:
        if body.get(field) is not None:
            return body[field]
    return None


def _unwrap_chat_completion(body: Dict[str, Any]) -> Any:
    """
    Chat-style backends wrap the answer in choices[0].message.content.
    A JSON object in that content is classified like a plain body,
    anything else is the answer text.
    """
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return body

    if isinstance(content, str):
        try:
            parsed = json.loads(content)
        except ValueError:
            return {"text": content}
        return parsed if isinstance(parsed, dict) else {"text": content}
    return {"text": content}


def classify_response_body(body: Any) -> ReasoningResponse:
    """
    Map a decoded backend body onto exactly one response variant.

    A visualization without text, a non-string or empty text and any shape
    without a text field are malformed; nothing is guessed.
    """
    if isinstance(body, dict) and "choices" in body:
        body = _unwrap_chat_completion(body)

    if not isinstance(body, dict):
        return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="Response body is not an object")

    error = body.get(RESPONSE_ERROR_FIELD)
    if error:
        return Failure(reason=FailureReason.BACKEND_ERROR, detail=str(error))

    text = _first_present(body, RESPONSE_TEXT_FIELDS)
    if text is not None and (not isinstance(text, str) or not text.strip()):
        return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="Text field is empty or not a string")

    viz_spec = _first_present(body, RESPONSE_VISUALIZATION_FIELDS)
    if viz_spec is not None:
        if text is None:
            return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="Visualization without text")
        if not isinstance(viz_spec, dict):
            return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="Visualization is not an object")
        return TextWithVisualization(text=text, viz_spec=viz_spec)

    if text is not None:
        return TextOnly(text=text)

    return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="No text or visualization field")


class ReasoningGateway:
    """
    Sends one request to the reasoning backend and classifies the answer.

    Every transport fault and unexpected body is returned as a Failure;
    nothing raises out of `send`.
    """

    def __init__(
        self,
        endpoint: str = None,
        api_key: str = None,
        profile: str = None,
        timeout_seconds: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        api_key = settings.AI_API_KEY if api_key is None else api_key
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.endpoint = endpoint or settings.AI_ENDPOINT
        self.profile = profile or settings.AI_REQUEST_PROFILE
        timeout = httpx.Timeout(timeout_seconds or settings.AI_TIMEOUT_SECONDS, connect=10.0)
        self.client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def aclose(self):
        await self.client.aclose()

    def build_body(self, payload: RequestPayload) -> Dict[str, Any]:
        if self.profile == "chat":
            return {
                "model": payload.model,
                "messages": [
                    {"role": "system", "content": payload.system_prompt.strip()},
                    {"role": "user", "content": payload.prompt.strip()},
                ],
            }
        return {
            "query": payload.user_query,
            "context": {r.source_id: r.payload for r in payload.context},
        }

    async def _post(self, payload: RequestPayload) -> Any:
        try:
            resp = await self.client.post(self.endpoint, json=self.build_body(payload))
        except httpx.HTTPError as e:
            raise NetworkError(f"{type(e).__name__}: {e}")

        if not resp.is_success:
            raise NetworkError(f"HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError:
            raise MalformedResponseError("Invalid JSON")

    async def send(self, payload: RequestPayload) -> ReasoningResponse:
        try:
            body = await self._post(payload)
        except NetworkError as e:
            logger.error(f"AI API Error: {e}")
            return Failure(reason=FailureReason.NETWORK_ERROR, detail=str(e))
        except MalformedResponseError as e:
            logger.error(f"AI API returned invalid body: {e}")
            return Failure(reason=FailureReason.MALFORMED_RESPONSE, detail=str(e))

        result = classify_response_body(body)
        if isinstance(result, Failure):
            logger.warning(f"AI response rejected: {result.reason.value} ({result.detail})")
        else:
            logger.info(f"AI response classified as {result.kind}")
        return result

