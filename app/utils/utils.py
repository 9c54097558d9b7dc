import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests

from app.models.settings import LLMSettings
from app.utils.exceptions import OracleError, retry_with_logging
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class OllamaOracle:
    """Text-generation oracle backed by Ollama's /api/chat endpoint."""

    def __init__(self, settings: LLMSettings):
        self.settings = settings
        self._post = retry_with_logging(
            max_attempts=settings.retry_attempts,
            backoff_factor=1.0,
            exceptions=(requests.RequestException,),
            logger=logger,
        )(self._post_once)

    def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = requests.post(
            f"{self.settings.base_url}/api/chat",
            json=payload,
            timeout=self.settings.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def chat(self, messages: List[Dict[str, str]]) -> Dict[str, str]:
        payload = {
            "model": self.settings.model_name,
            "messages": messages,
            "options": {"temperature": self.settings.temperature},
            "stream": False,  # single JSON body, not NDJSON chunks
        }
        try:
            data = self._post(payload)
        except requests.RequestException as e:
            raise OracleError(f"Oracle request failed: {e}", model_name=self.settings.model_name, cause=e)
        except ValueError as e:
            raise OracleError(f"Oracle returned a non-JSON body: {e}", model_name=self.settings.model_name, cause=e)

        content = (data.get("message") or {}).get("content")
        if not isinstance(content, str):
            raise OracleError("Oracle reply has no message content", model_name=self.settings.model_name)
        return {"content": content}


@dataclass
class Parsed:
    data: Dict[str, Any]


@dataclass
class Fallback:
    reason: str


ParseResult = Union[Parsed, Fallback]


def find_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span in `text`, skipping braces inside JSON strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_json_reply(text: str) -> ParseResult:
    """Strictly parse the first JSON object of an untrusted reply."""
    if not text:
        return Fallback("empty reply")
    candidate = find_first_json_object(text)
    if candidate is None:
        return Fallback("no JSON object in reply")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return Fallback(f"invalid JSON object: {e.msg}")
    return Parsed(data)
