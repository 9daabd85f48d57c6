"""
Export functionality for TracePlan.

Renders a merged TestPlan to:
- Markdown
- Plain text
- JSON (camelCase wire format)
- Playwright API test code (see playwright_exporter)
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List

from ..models import TestPlan
from .playwright_exporter import PlaywrightExporter

FORMATS = ('md', 'txt', 'json', 'code')

FILE_EXTENSIONS = {
    'md': '.md',
    'txt': '.txt',
    'json': '.json',
    'code': '.spec.ts',
}

DEFAULT_TITLES = {
    'testPlan': 'Test Plan',
    'testScenario': 'Test Scenarios',
    'testCases': 'Test Cases',
    'code': 'API Tests',
}

# (heading, attribute, field order) for object sections
OBJECT_SECTIONS = [
    ('Risk Assessment', 'risk_assessment', ['category', 'impact', 'description', 'mitigation']),
    ('Deliverables', 'deliverables', ['title', 'format', 'frequency', 'description']),
    ('Success Criteria', 'success_criteria', ['category', 'threshold', 'criteria']),
    ('Roles and Responsibilities', 'roles_and_responsibility', ['role', 'responsibility']),
    ('Entry Criteria', 'entry_criteria', ['description']),
    ('Exit Criteria', 'exit_criteria', ['description']),
    ('Test Execution Strategy', 'test_execution_strategy', ['description']),
    ('Test Schedule', 'test_schedule', ['description']),
    ('Tools and Automation Strategy', 'tools_and_automation_strategy', ['description']),
    ('Approvals and Sign-offs', 'approvals_and_signoffs', ['approver', 'title', 'description']),
    ('References', 'references', ['title', 'url']),
    ('Test Items', 'test_items', ['id', 'method', 'endpoint', 'description']),
    ('Staffing and Training', 'staffing_and_training', ['role', 'skills']),
]

STRING_SECTIONS = [
    ('Features To Be Tested', 'features_to_be_tested'),
    ('Features Not To Be Tested', 'features_not_to_be_tested'),
    ('Pass Criteria', 'pass_criteria'),
    ('Fail Criteria', 'fail_criteria'),
    ('Suspension Criteria', 'suspension_criteria'),
    ('Test Data Requirements', 'test_data_requirements'),
    ('Negative Scenarios', 'negative_scenarios'),
]


def _label(field_name: str) -> str:
    """camelCase / snake_case field name to a Title Case label."""
    words = re.sub(r'([a-z])([A-Z])', r'\1 \2', field_name).replace('_', ' ')
    return words[:1].upper() + words[1:]


def _indent_block(text: str, prefix: str = '  ') -> str:
    return '\n'.join(prefix + line for line in text.splitlines())


class MarkdownExporter:
    """
    Renders a TestPlan as Markdown.
    """

    @staticmethod
    def render(plan: TestPlan, artifact_type: str = 'testPlan') -> str:
        """
        Render the plan.

        testPlan renders every section; scenario and case artifacts render
        only the title, description and stories.

        Args:
            plan: Merged plan
            artifact_type: testPlan, testScenario, testCases or code

        Returns:
            Markdown text
        """
        title = plan.title or DEFAULT_TITLES.get(artifact_type, 'Test Plan')
        lines: List[str] = [f"# {title}", '']

        if plan.description:
            lines += [plan.description, '']

        lines += [
            f"**Stories:** {len(plan.stories)}  ",
            f"**Test cases:** {plan.test_case_count}",
            '',
        ]

        lines += MarkdownExporter._render_stories(plan)

        if artifact_type == 'testPlan':
            lines += MarkdownExporter._render_sections(plan)

        return '\n'.join(lines).rstrip() + '\n'

    @staticmethod
    def _render_stories(plan: TestPlan) -> List[str]:
        lines = ['## Stories', '']
        for story in plan.stories:
            heading = f"{story.id}: {story.title}" if story.id and story.title else (story.title or story.id)
            lines += [f"### {heading}", '']
            if story.description:
                lines += [story.description, '']

            for tc in story.test_cases:
                tc_heading = f"{tc.id}: {tc.title}" if tc.id and tc.title else (tc.title or tc.id)
                lines += [f"#### {tc_heading}", '']
                if tc.description:
                    lines += [tc.description, '']

                meta = []
                if tc.severity:
                    meta.append(f"**Severity:** {tc.severity}")
                if tc.priority is not None:
                    meta.append(f"**Priority:** {tc.priority}")
                if tc.req_id:
                    meta.append(f"**Requirement:** {tc.req_id}")
                if meta:
                    lines += [' | '.join(meta), '']

                if tc.steps:
                    lines.append('**Steps:**')
                    lines += [f"{i}. {step}" for i, step in enumerate(tc.steps, 1)]
                    lines.append('')

                if tc.expected_result:
                    lines += [f"**Expected result:** {tc.expected_result}", '']

                api = tc.api_details
                if api.method or api.endpoint:
                    lines.append(f"**API:** `{api.method} {api.endpoint}` → {api.expected_status}")
                    if api.headers:
                        lines.append('')
                        lines.append('Headers:')
                        lines += [f"- `{k}: {v}`" for k, v in api.headers.items()]
                    if api.body:
                        lines += ['', '```json', api.body, '```']
                    lines.append('')
        return lines

    @staticmethod
    def _render_sections(plan: TestPlan) -> List[str]:
        lines: List[str] = []

        for heading, attr, field_order in OBJECT_SECTIONS:
            lines += [f"## {heading}", '']
            items = getattr(plan, attr)
            if not items:
                lines += ['None', '']
                continue
            for item in items:
                lines += MarkdownExporter._render_object(item, field_order)
            lines.append('')

        for heading, attr in STRING_SECTIONS:
            lines += [f"## {heading}", '']
            items = getattr(plan, attr)
            lines += [f"- {item}" for item in items] if items else ['None']
            lines.append('')

        env = plan.environment_requirements
        lines += ['## Environment Requirements', '']
        if env.get('hardware') or env.get('software') or env.get('network'):
            lines.append(f"- **Hardware:** {', '.join(env.get('hardware', [])) or 'None'}")
            lines.append(f"- **Software:** {', '.join(env.get('software', [])) or 'None'}")
            lines.append(f"- **Network:** {env.get('network') or 'None'}")
        else:
            lines.append('None')
        lines.append('')

        lines += ['## Traceability Matrix', '']
        if plan.traceability_matrix:
            lines += ['| Requirement | Test Cases |', '|---|---|']
            for req_id, case_ids in plan.traceability_matrix.items():
                lines.append(f"| {req_id} | {', '.join(case_ids)} |")
        else:
            lines.append('None')
        lines.append('')

        return lines

    @staticmethod
    def _render_object(item: Any, field_order: List[str]) -> List[str]:
        if not isinstance(item, dict):
            return [f"- {item}"]

        keys = [k for k in field_order if k in item] + [k for k in item if k not in field_order]
        lines = []
        first = True
        for key in keys:
            value = item[key]
            if isinstance(value, list):
                value = ', '.join(str(v) for v in value)
            value = str(value) if value is not None else ''
            if not value:
                continue

            prefix = '- ' if first else '  '
            first = False
            if '\n' in value:
                lines.append(f"{prefix}**{_label(key)}:**")
                lines.append(_indent_block(value, '  ' + '  '))
            else:
                lines.append(f"{prefix}**{_label(key)}:** {value}")
        return lines or ['- (empty)']


class TextExporter:
    """
    Renders a TestPlan as plain text (Markdown without markup).
    """

    _HEADING = re.compile(r'^#{1,6}\s+', re.MULTILINE)
    _EMPHASIS = re.compile(r'\*\*(.*?)\*\*')
    _CODE = re.compile(r'`([^`]*)`')
    _FENCE = re.compile(r"^```\w*[ \t]*\n?", re.MULTILINE)

    @staticmethod
    def render(plan: TestPlan, artifact_type: str = 'testPlan') -> str:
        text = MarkdownExporter.render(plan, artifact_type)
        text = TextExporter._FENCE.sub('', text)
        text = TextExporter._HEADING.sub('', text)
        text = TextExporter._EMPHASIS.sub(r'\1', text)
        text = TextExporter._CODE.sub(r'\1', text)
        # Markdown hard line breaks
        return re.sub(r' {2}$', '', text, flags=re.MULTILINE)


class JsonExporter:
    """
    Renders a TestPlan in the JSON wire format.
    """

    @staticmethod
    def render(plan: TestPlan, artifact_type: str = 'testPlan') -> str:
        data: Dict[str, Any] = plan.to_dict()
        if artifact_type != 'testPlan':
            data = {
                'title': data['title'],
                'description': data['description'],
                'stories': data['stories'],
            }
        return json.dumps(data, indent=2, ensure_ascii=False) + '\n'


_RENDERERS = {
    'md': MarkdownExporter,
    'txt': TextExporter,
    'json': JsonExporter,
    'code': PlaywrightExporter,
}


def default_format(artifact_type: str) -> str:
    return 'code' if artifact_type == 'code' else 'md'


def render(plan: TestPlan, artifact_type: str = 'testPlan', fmt: str = 'md') -> str:
    """
    Render a plan in the requested format.

    The code artifact type always renders as Playwright code.

    Raises:
        ValueError: If fmt is not one of md, txt, json, code
    """
    if artifact_type == 'code':
        fmt = 'code'
    if fmt not in _RENDERERS:
        raise ValueError(f"Unknown export format: {fmt}. Expected one of: {', '.join(FORMATS)}")
    return _RENDERERS[fmt].render(plan, artifact_type)


def export_plan(plan: TestPlan, artifact_type: str, fmt: str, output_path: str) -> Path:
    """
    Render a plan and write it to disk.

    Args:
        plan: Merged plan
        artifact_type: testPlan, testScenario, testCases or code
        fmt: md, txt, json or code
        output_path: Destination file (parent directories are created)

    Returns:
        Path of the written file
    """
    content = render(plan, artifact_type, fmt)

    output_file = Path(output_path)
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"❌ Error creating directory {output_file.parent}: {e}", flush=True)
        raise

    try:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        print(f"❌ Error writing to {output_path}: {e}", flush=True)
        raise

    print(f"✓ Exported {len(plan.stories)} stories, {plan.test_case_count} test cases → {output_path}", flush=True)
    return output_file
