"""Final rendering of tool results into bounded text.

:func:`present_result` and :func:`project_error` are the only producers of
error results; everything a tool returns or raises ends up in a
:class:`PresentedText`.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, ErrorData

from .redaction import redact
from .transforms import pick

logger = logging.getLogger(__name__)

NO_DATA = "No data returned from SAP"
EMPTY_LIST = "Empty list"
MAX_LIST_ITEMS = 50

LIST_NAME_ALIASES = ("name", "ObjectName")
LIST_TYPE_ALIASES = ("type", "ObjectType")
LIST_DESCRIPTION_ALIASES = ("description",)
LIST_URI_ALIASES = ("uri",)

_MARKUP = re.compile(r"<[^>]*>?")


@dataclass(frozen=True)
class PresentedText:
    text: str
    is_error: bool = False

    @property
    def content(self) -> List[Dict[str, str]]:
        return [{"type": "text", "text": self.text}]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"content": self.content}
        if self.is_error:
            result["isError"] = True
        return result


def _error_result(text: str) -> PresentedText:
    return PresentedText(text=text, is_error=True)


def tool_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def _looks_like_xml(text: str) -> bool:
    return text.startswith("<?xml") or "<adt:" in text


def present_text(text: str) -> str:
    text = text.strip()
    if _looks_like_xml(text):
        text = _MARKUP.sub("", text).strip()
    return text


def _list_line(item: Any) -> str:
    if not isinstance(item, dict):
        return f"- {item}"
    name = pick(item, LIST_NAME_ALIASES)
    object_type = pick(item, LIST_TYPE_ALIASES)
    description = pick(item, LIST_DESCRIPTION_ALIASES)
    line = f"- {name} ({object_type}) {description}"
    uri = pick(item, LIST_URI_ALIASES)
    if uri:
        line += f" URL: {uri}"
    return line


def present_list(items: List[Any]) -> str:
    if not items:
        return EMPTY_LIST
    output = "\n".join(_list_line(item) for item in items[:MAX_LIST_ITEMS])
    if len(items) > MAX_LIST_ITEMS:
        output += f"\n\n...and {len(items) - MAX_LIST_ITEMS} more objects."
    return output


def present_result(result: Any) -> PresentedText:
    try:
        if result is None or (isinstance(result, (str, bytes, int, float)) and not result):
            return PresentedText(NO_DATA)

        if isinstance(result, bytes):
            result = result.decode("utf-8", errors="replace")
        if isinstance(result, str):
            return PresentedText(present_text(result))

        clean = redact(result)
        if isinstance(clean, list):
            return PresentedText(present_list(clean))
        return PresentedText(json.dumps(clean, indent=2, ensure_ascii=False))
    except Exception as exc:
        logger.exception("Serialization error")
        return _error_result(f"Error: {exc}")


def project_error(error: BaseException) -> PresentedText:
    """Uniform error text; only protocol errors keep their own message."""
    if isinstance(error, McpError):
        logger.warning("Tool error %s: %s", error.error.code, error.error.message)
        payload = {"error": error.error.message, "code": error.error.code}
    else:
        logger.error("Unexpected tool failure: %r", error, exc_info=error)
        payload = {"error": "Internal server error", "code": INTERNAL_ERROR}
    return _error_result(json.dumps(payload))
