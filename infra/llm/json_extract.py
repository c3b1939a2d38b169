import json
import re
from typing import Any, Callable, Dict, List, Optional

from domain.errors import ExtractionError

_OPEN_FENCE = re.compile(r"^```(json)?", re.I)
_CLOSE_FENCE = re.compile(r"```$")
_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(raw: str) -> str:
    cleaned = (raw or "").strip()
    cleaned = _OPEN_FENCE.sub("", cleaned)
    cleaned = _CLOSE_FENCE.sub("", cleaned)
    return cleaned.strip()


def _slice_braces(cleaned: str) -> Any:
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1:
        raise ValueError("no braces")
    return json.loads(cleaned[start:end + 1])


def _direct(cleaned: str) -> Any:
    return json.loads(cleaned)


def _regex_trim(cleaned: str) -> Any:
    m = _GREEDY_OBJECT.search(cleaned)
    if not m:
        raise ValueError("no regex match")
    return json.loads(m.group(0))


STRATEGIES: List[tuple[str, Callable[[str], Any]]] = [
    ("slice_braces", _slice_braces),
    ("direct", _direct),
    ("regex_trim", _regex_trim),
]


def parse_llm_json(raw_text: Optional[str]) -> Any:
    """Recover JSON from a model response that may carry fences or prose around it.

    Strategies run in order and the first one that parses wins. If none does,
    ExtractionError is raised with each strategy's failure reason attached.
    """
    cleaned = strip_code_fences(raw_text or "")
    attempts: List[Dict[str, str]] = []
    for name, strategy in STRATEGIES:
        try:
            return strategy(cleaned)
        except ValueError as exc:  # json.JSONDecodeError is a ValueError
            attempts.append({"strategy": name, "error": str(exc)})
    raise ExtractionError("Failed to parse LLM JSON", attempts=attempts)
