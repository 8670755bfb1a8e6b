import json
from typing import Sequence

from workspace_chat.models.chat_models import PromptTemplate, RequestPayload
from workspace_chat.models.data_models import SourceQueryResult
from workspace_chat.utils.errors import EmptyQueryError


def serialize_context(context: Sequence[SourceQueryResult]) -> str:
    """Successful sources as stable JSON keyed by source id."""
    data = {r.source_id: r.payload for r in context if r.ok}
    return json.dumps(data, indent=2, sort_keys=True, default=str, ensure_ascii=False)


class RequestComposer:
    def __init__(self, model: str, template: PromptTemplate = None):
        self.model = model
        self.template = template or PromptTemplate.default()

    def compose(
        self,
        query: str,
        context: Sequence[SourceQueryResult],
        template: PromptTemplate = None,
    ) -> RequestPayload:
        """
        Build the backend request for one turn.

        Failed sources are dropped before anything is embedded. The result
        depends only on the arguments, so equal inputs give equal payloads.
        """
        if query is None or not query.strip():
            raise EmptyQueryError("Query is empty")

        template = template or self.template
        user_query = query.strip()
        successful = tuple(r for r in context if r.ok)

        return RequestPayload(
            model=self.model,
            system_prompt=template.system_prompt,
            prompt=template.render(serialize_context(successful), user_query),
            context=successful,
            user_query=user_query,
        )
