"""Knowledge-base search exposed as an ordinary server tool.

The search itself belongs to the integrator; this module only adapts a
search callable to the tool contract.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .models import ToolContext, ToolDefinition, ToolLocation

logger = logging.getLogger("llmsdk.knowledge")

DEFAULT_TOOL_NAME = "search_knowledge_base"


@dataclass
class KnowledgeBaseConfig:
    """Integrator-supplied knowledge-base search.

    Attributes:
        search: Callable ``search(query, **params)`` returning a list of
            results (dicts or strings). May be sync or async.
        name: Tool name presented to the model.
        description: Tool description presented to the model.
        default_limit: Result limit used when the request does not set one.
        defaults: Extra parameters always passed to ``search``.
    """

    search: Callable[..., Any]
    name: str = DEFAULT_TOOL_NAME
    description: str = (
        "Search the knowledge base for information relevant to the user's question. "
        "Use this before answering questions about documentation or product details."
    )
    default_limit: int = 5
    defaults: dict[str, Any] = field(default_factory=dict)


def knowledge_base_tool(
    config: KnowledgeBaseConfig, params: Optional[dict[str, Any]] = None
) -> ToolDefinition:
    """Build the search tool for one request.

    ``params`` are the request's knowledge-base parameters, e.g. a project ID
    or a result limit, and are forwarded to the search callable.
    """
    bound = {**config.defaults, **(params or {})}
    bound.setdefault("limit", config.default_limit)

    async def handler(input: dict[str, Any], context: Optional[ToolContext] = None) -> dict[str, Any]:
        query = str(input.get("query", "")).strip()
        if not query:
            raise ValueError("query is required")
        results = config.search(query, **bound)
        if inspect.isawaitable(results):
            results = await results
        results = list(results or [])
        logger.debug("Knowledge base search for %r returned %d results", query, len(results))
        return {"query": query, "results": results, "count": len(results)}

    return ToolDefinition(
        name=config.name,
        description=config.description,
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to search for."},
            },
            "required": ["query"],
        },
        location=ToolLocation.SERVER,
        handler=handler,
    )
