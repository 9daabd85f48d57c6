"""
Render a merged plan as a Playwright API test file.

One test() per test case that carries an HTTP method and endpoint,
grouped per story in test.describe() blocks.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..common.url_utils import TEMPLATE_PATTERN
from ..models import Story, TestCase, TestPlan


@dataclass
class PlaywrightTest:
    """A single renderable Playwright test."""
    name: str
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    expected_status: int = 200


class PlaywrightExporter:
    """Convert stories and test cases to @playwright/test code."""

    @staticmethod
    def render(plan: TestPlan, artifact_type: str = 'code') -> str:
        """
        Render the plan as TypeScript.

        Test cases without apiDetails.method or apiDetails.endpoint are
        skipped. The file ends with a total test count comment.

        Returns:
            TypeScript source
        """
        lines = [
            "import { test, expect } from '@playwright/test';",
            '',
        ]
        total = 0

        for story in plan.stories:
            tests = PlaywrightExporter.convert_story(story)
            if not tests:
                continue
            total += len(tests)

            lines.append(f"test.describe({_js_string(_story_name(story))}, () => {{")
            for pw_test in tests:
                lines += _indent(PlaywrightExporter.render_test(pw_test), '  ')
                lines.append('')
            if lines[-1] == '':
                lines.pop()
            lines += ['});', '']

        lines.append(f"// Total tests: {total}")
        return '\n'.join(lines) + '\n'

    @staticmethod
    def convert_story(story: Story) -> List[PlaywrightTest]:
        tests = []
        for tc in story.test_cases:
            pw_test = PlaywrightExporter.convert_test_case(tc)
            if pw_test is not None:
                tests.append(pw_test)
        return tests

    @staticmethod
    def convert_test_case(tc: TestCase) -> Optional[PlaywrightTest]:
        """Convert one test case, or return None if it has no request to send."""
        api = tc.api_details
        if not api.method or not api.endpoint:
            return None

        # HTTP/2 pseudo-headers cannot be sent by the request fixture
        headers = {k: v for k, v in api.headers.items() if k and not k.startswith(':')}

        name = f"{tc.id}: {tc.title}" if tc.id and tc.title else (tc.title or tc.id)
        return PlaywrightTest(
            name=name,
            method=api.method.upper(),
            url=api.endpoint,
            headers=headers,
            body=api.body or None,
            expected_status=api.expected_status
        )

    @staticmethod
    def render_test(pw_test: PlaywrightTest) -> List[str]:
        options = [f"  method: {_js_string(pw_test.method)},"]
        if pw_test.headers:
            options.append(f"  headers: {json.dumps(pw_test.headers, ensure_ascii=False)},")
        if pw_test.body is not None:
            options.append(f"  data: {_js_body(pw_test.body)},")

        lines = [
            f"test({_js_string(pw_test.name)}, async ({{ request }}) => {{",
            f"  const response = await request.fetch({_js_url(pw_test.url)}, {{",
        ]
        lines += _indent(options, '  ')
        lines += [
            '  });',
            f"  expect(response.status()).toBe({pw_test.expected_status});",
            '});',
        ]
        return lines


def _story_name(story: Story) -> str:
    if story.id and story.title:
        return f"{story.id}: {story.title}"
    return story.title or story.id


def _indent(lines: List[str], prefix: str) -> List[str]:
    return [prefix + line if line else line for line in lines]


def _js_string(text: str) -> str:
    """JSON string literals are valid JavaScript string literals."""
    return json.dumps(text, ensure_ascii=False)


def _js_url(url: str) -> str:
    """
    Render a URL literal.

    {{base_url}} style placeholders become ${process.env.BASE_URL} in a
    template literal so the generated tests read them from the environment.
    """
    if not TEMPLATE_PATTERN.search(url):
        return _js_string(url)

    def replace_var(match):
        var_name = re.sub(r'[^0-9A-Za-z]+', '_', match.group(0).strip('{} ')).upper()
        return f"${{process.env.{var_name} ?? ''}}"

    escaped = url.replace('\\', '\\\\').replace('`', '\\`')
    return '`' + TEMPLATE_PATTERN.sub(replace_var, escaped) + '`'


def _js_body(body: str) -> str:
    """JSON bodies become object literals; anything else is sent as text."""
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return _js_string(body)
    if isinstance(parsed, (dict, list)):
        return json.dumps(parsed, ensure_ascii=False)
    return _js_string(body)
