"""
Tests for plan exporters.

Tests Markdown, text, JSON and Playwright rendering and writing to disk.
"""

import json

import pytest

from traceplan.export import (
    JsonExporter,
    MarkdownExporter,
    PlaywrightExporter,
    TextExporter,
    export_plan,
    render,
)
from traceplan.models import TestPlan


@pytest.fixture
def plan(make_story):
    """Merged plan with two stories and a few populated sections."""
    users = make_story('S1', 'TC1', title='Users')
    users['testCases'][0].update({
        'severity': 'High',
        'priority': 1,
        'apiDetails': {
            'method': 'GET',
            'endpoint': 'https://api.example.com/api/users',
            'headers': {'Authorization': 'Bearer t', ':authority': 'api.example.com'},
            'body': '',
            'expectedStatus': 200,
        },
    })
    users['testCases'].append({'id': 'TC2', 'title': 'Manual review', 'steps': ['Look at logs']})

    orders = make_story('S2', 'TC3', title='Orders')
    orders['testCases'][0]['apiDetails'] = {
        'method': 'POST',
        'endpoint': '{{base_url}}/api/orders',
        'headers': {'Content-Type': 'application/json'},
        'body': '{"item": "book"}',
        'expectedStatus': 201,
    }

    return TestPlan.from_dict({
        'title': 'Shop API Test Plan',
        'description': 'Covers users and orders',
        'stories': [users, orders],
        'riskAssessment': [{'category': 'Auth', 'description': '- Token leakage\n- Weak passwords',
                            'mitigation': '- Rotate keys', 'impact': 'High'}],
        'featuresToBeTested': ['Checkout', 'Login'],
        'environmentRequirements': {'hardware': ['4 vCPU'], 'software': ['Chrome'], 'network': '1 Gbps'},
        'traceabilityMatrix': {'REQ-1': ['TC1', 'TC3']},
    })


class TestMarkdownExporter:
    """Test suite for Markdown rendering."""

    def test_header_and_counts(self, plan):
        """Test title, description and counts."""
        md = MarkdownExporter.render(plan)

        assert md.startswith('# Shop API Test Plan\n')
        assert 'Covers users and orders' in md
        assert '**Stories:** 2' in md
        assert '**Test cases:** 3' in md

    def test_stories_and_cases(self, plan):
        """Test stories and test cases become headings with details."""
        md = MarkdownExporter.render(plan)

        assert '### S1: Users' in md
        assert '#### TC1: Case TC1' in md
        assert '**Severity:** High | **Priority:** 1' in md
        assert '**API:** `GET https://api.example.com/api/users` → 200' in md
        assert '1. Look at logs' in md

    def test_full_plan_sections(self, plan):
        """Test test plans render every section, with None for empty ones."""
        md = MarkdownExporter.render(plan, 'testPlan')

        assert '## Risk Assessment' in md
        assert '- **Category:** Auth' in md
        assert '## Deliverables\n\nNone' in md
        assert '- Checkout\n- Login' in md
        assert '- **Network:** 1 Gbps' in md
        assert '| REQ-1 | TC1, TC3 |' in md

    def test_multiline_values_indented(self, plan):
        """Test bulleted merge text is nested under its label."""
        md = MarkdownExporter.render(plan)
        assert '  **Description:**\n    - Token leakage\n    - Weak passwords' in md

    def test_cases_only_for_other_types(self, plan):
        """Test scenario and case artifacts skip plan sections."""
        md = MarkdownExporter.render(plan, 'testCases')

        assert '## Stories' in md
        assert '## Risk Assessment' not in md
        assert '## Traceability Matrix' not in md

    def test_default_title(self, plan):
        """Test a missing title falls back to the artifact name."""
        plan.title = ''
        assert MarkdownExporter.render(plan, 'testScenario').startswith('# Test Scenarios\n')


class TestTextExporter:
    """Test suite for plain text rendering."""

    def test_markup_removed(self, plan):
        """Test headings, emphasis and code markup are stripped."""
        text = TextExporter.render(plan)

        assert not any(line.startswith('#') for line in text.splitlines())
        assert '**' not in text
        assert '`' not in text
        assert 'Shop API Test Plan' in text
        assert 'API: GET https://api.example.com/api/users → 200' in text


class TestJsonExporter:
    """Test suite for JSON rendering."""

    def test_full_plan(self, plan):
        """Test test plans export the whole wire format."""
        data = json.loads(JsonExporter.render(plan, 'testPlan'))

        assert data == plan.to_dict()
        assert data['riskAssessment'][0]['impact'] == 'High'

    def test_stories_only(self, plan):
        """Test other artifacts export only title, description and stories."""
        data = json.loads(JsonExporter.render(plan, 'testCases'))

        assert set(data) == {'title', 'description', 'stories'}
        assert len(data['stories']) == 2


class TestPlaywrightExporter:
    """Test suite for Playwright code rendering."""

    def test_structure(self, plan):
        """Test imports, describe blocks and the total count."""
        code = PlaywrightExporter.render(plan)

        assert code.startswith("import { test, expect } from '@playwright/test';")
        assert 'test.describe("S1: Users", () => {' in code
        assert 'test.describe("S2: Orders", () => {' in code
        assert code.rstrip().endswith('// Total tests: 2')

    def test_request_and_assertion(self, plan):
        """Test requests go through request.fetch with a status assertion."""
        code = PlaywrightExporter.render(plan)

        assert 'test("TC1: Case TC1", async ({ request }) => {' in code
        assert 'request.fetch("https://api.example.com/api/users", {' in code
        assert 'method: "GET",' in code
        assert 'expect(response.status()).toBe(200);' in code
        assert 'expect(response.status()).toBe(201);' in code

    def test_pseudo_headers_dropped(self, plan):
        """Test HTTP/2 pseudo-headers are not sent."""
        code = PlaywrightExporter.render(plan)

        assert '"Authorization": "Bearer t"' in code
        assert ':authority' not in code

    def test_cases_without_request_skipped(self, plan):
        """Test test cases with no method or endpoint are not rendered."""
        assert 'Manual review' not in PlaywrightExporter.render(plan)

    def test_template_url_and_json_body(self, plan):
        """Test {{vars}} read from the environment and JSON bodies become objects."""
        code = PlaywrightExporter.render(plan)

        assert "request.fetch(`${process.env.BASE_URL ?? ''}/api/orders`, {" in code
        assert 'data: {"item": "book"},' in code

    def test_story_without_requests_omitted(self):
        """Test stories with nothing to send produce no describe block."""
        empty = TestPlan.from_dict({'stories': [{'id': 'S1', 'title': 'Docs', 'testCases': [{'id': 'TC1'}]}]})
        code = PlaywrightExporter.render(empty)

        assert 'test.describe' not in code
        assert '// Total tests: 0' in code


class TestRenderAndExport:
    """Test suite for render() and export_plan()."""

    def test_code_type_forces_code_format(self, plan):
        """Test the code artifact always renders Playwright source."""
        assert render(plan, 'code', 'md').startswith('import { test, expect }')

    def test_unknown_format(self, plan):
        """Test unknown formats are rejected."""
        with pytest.raises(ValueError, match='Unknown export format'):
            render(plan, 'testPlan', 'pdf')

    def test_export_creates_directories(self, plan, tmp_path, capsys):
        """Test parent directories are created and the file is UTF-8."""
        output = tmp_path / 'reports' / 'nested' / 'plan.md'

        written = export_plan(plan, 'testPlan', 'md', str(output))

        assert written == output
        assert output.read_text(encoding='utf-8') == render(plan, 'testPlan', 'md')
        assert '✓ Exported 2 stories, 3 test cases' in capsys.readouterr().out

    def test_export_json(self, plan, tmp_path):
        """Test JSON export writes parseable content."""
        output = tmp_path / 'plan.json'
        export_plan(plan, 'testScenario', 'json', str(output))

        assert json.loads(output.read_text(encoding='utf-8'))['title'] == 'Shop API Test Plan'
