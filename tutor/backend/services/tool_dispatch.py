from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Any]


def _required_tool_calls(run: Any) -> List[Any]:
	action = getattr(run, "required_action", None)
	if action is None or getattr(action, "type", None) != "submit_tool_outputs":
		return []
	submit = getattr(action, "submit_tool_outputs", None)
	return list(getattr(submit, "tool_calls", None) or [])


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
	if not raw:
		return {}
	try:
		parsed = json.loads(raw)
	except json.JSONDecodeError:
		return {"raw": raw}
	return parsed if isinstance(parsed, dict) else {"value": parsed}


class ToolRegistry:
	"""Maps function tool names to local handlers for requires_action runs.

	Calls with no registered handler are left out of the submitted outputs and
	logged, so an empty registry submits an empty set.
	"""

	def __init__(self, handlers: Optional[Dict[str, ToolHandler]] = None):
		self._handlers: Dict[str, ToolHandler] = dict(handlers or {})

	def register(self, name: str, handler: ToolHandler) -> None:
		self._handlers[name] = handler

	def names(self) -> List[str]:
		return sorted(self._handlers)

	def outputs_for(self, run: Any) -> List[Dict[str, str]]:
		outputs: List[Dict[str, str]] = []
		for call in _required_tool_calls(run):
			function = getattr(call, "function", None)
			name = getattr(function, "name", None) or ""
			handler = self._handlers.get(name)
			if handler is None:
				logger.warning(
					"No handler for tool call %s (%s) on run %s; leaving it unanswered.",
					getattr(call, "id", "?"),
					name or "unknown",
					getattr(run, "id", "?"),
				)
				continue
			result = handler(_parse_arguments(getattr(function, "arguments", None)))
			output = result if isinstance(result, str) else json.dumps(result)
			outputs.append({"tool_call_id": call.id, "output": output})
		return outputs


def acknowledge_knowledge_base_usage(arguments: Dict[str, Any]) -> Dict[str, Any]:
	return {
		"acknowledged": True,
		"documents_vector_store": bool(arguments.get("documents_vector_store", True)),
		"training_fallback": bool(arguments.get("training_fallback", True)),
	}


def default_registry() -> ToolRegistry:
	return ToolRegistry({"ensure_knowledge_base_usage": acknowledge_knowledge_base_usage})
