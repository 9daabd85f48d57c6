"""
Decode model replies into partial artifacts.

A reply is either a full test-plan object (testPlan) or something holding
a list of stories (testScenario, testCases, code). Decoding never raises;
it returns a tagged DecodeResult the generator can act on.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..models import empty_partial

logger = logging.getLogger(__name__)

# Same fence pattern the generator uses for every model reply
_CODE_FENCE = re.compile(r'```(?:json)?\s*\n(.*?)\n```', re.DOTALL)


class DecodeStatus(Enum):
    OK = 'ok'
    PARSE_ERROR = 'parse_error'
    SCHEMA_ERROR = 'schema_error'


@dataclass
class DecodeResult:
    """Outcome of decoding one batch reply."""
    status: DecodeStatus
    partial: Optional[Dict[str, Any]] = None
    error: str = ''

    @property
    def ok(self) -> bool:
        return self.status == DecodeStatus.OK


def strip_code_fences(text: str) -> str:
    """Return the first fenced block if the reply is wrapped in ``` fences."""
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1)
    return text


def _has_identity(item: Dict[str, Any]) -> bool:
    return bool(str(item.get('id') or '').strip() or str(item.get('title') or '').strip())


def clean_stories(stories: List[Any]) -> List[Dict[str, Any]]:
    """
    Drop stories and test cases the merger cannot key.

    A story or test case must be an object with an id or a title.
    Non-list testCases become an empty list.
    """
    cleaned = []
    for story in stories:
        if not isinstance(story, dict) or not _has_identity(story):
            logger.warning(f"Dropping story without id or title: {str(story)[:80]}")
            continue

        test_cases = story.get('testCases')
        if not isinstance(test_cases, list):
            test_cases = []

        kept_cases = []
        for tc in test_cases:
            if not isinstance(tc, dict) or not _has_identity(tc):
                logger.warning(
                    f"Dropping test case without id or title in story "
                    f"{story.get('id') or story.get('title')}"
                )
                continue
            kept_cases.append(tc)

        cleaned.append({**story, 'testCases': kept_cases})
    return cleaned


def _extract_stories(parsed: Any) -> Any:
    """Find the stories list in {stories}, [stories...] or [{stories}]."""
    if isinstance(parsed, dict):
        return parsed.get('stories', [])
    if isinstance(parsed, list):
        if parsed and isinstance(parsed[0], dict) and 'stories' in parsed[0]:
            return parsed[0]['stories']
        return parsed
    return None


def decode_response(text: Optional[str], artifact_type: str) -> DecodeResult:
    """
    Decode one model reply.

    Args:
        text: Raw reply text
        artifact_type: testPlan, testScenario, testCases or code

    Returns:
        DecodeResult: OK with a partial artifact, PARSE_ERROR for empty or
        invalid JSON, SCHEMA_ERROR for JSON of the wrong shape
    """
    if not text or not text.strip():
        return DecodeResult(DecodeStatus.PARSE_ERROR, error='Empty reply')

    try:
        parsed = json.loads(strip_code_fences(text.strip()))
    except json.JSONDecodeError as e:
        return DecodeResult(DecodeStatus.PARSE_ERROR, error=f"Invalid JSON: {e}")

    if not isinstance(parsed, (dict, list)):
        return DecodeResult(
            DecodeStatus.SCHEMA_ERROR,
            error=f"Expected a JSON object or array, got {type(parsed).__name__}"
        )

    if artifact_type == 'testPlan' and isinstance(parsed, dict):
        partial = dict(parsed)
        stories = partial.get('stories', [])
    else:
        partial = empty_partial()
        stories = _extract_stories(parsed)

    if stories is None:
        stories = []
    if not isinstance(stories, list):
        return DecodeResult(
            DecodeStatus.SCHEMA_ERROR,
            error=f"'stories' must be a list, got {type(stories).__name__}"
        )

    partial['stories'] = clean_stories(stories)
    return DecodeResult(DecodeStatus.OK, partial=partial)
