"""
Tests for merging partial artifacts.

Tests story deduplication, fuzzy grouping of plan sections, ordering and
the error cases of PlanMerger.
"""

import pytest

from traceplan.config import MergeSettings
from traceplan.errors import NoEndpointsError
from traceplan.merge import PlanMerger, join_lines
from traceplan.models import TestPlan


@pytest.fixture
def merger():
    """Merger with default settings."""
    return PlanMerger()


@pytest.fixture
def partial(make_story):
    """Factory for a partial with one story plus the given sections."""
    def _partial(story_id='S1', *cases, **sections):
        doc = {'stories': [make_story(story_id, *(cases or ('TC-' + story_id,)))]}
        doc.update(sections)
        return doc
    return _partial


def case_ids(plan):
    return {(story.id, tc.id) for story in plan.stories for tc in story.test_cases}


class TestStories:
    """Test suite for story and test case merging."""

    def test_stories_sorted_and_unique(self, merger, partial):
        """Test stories from all partials appear once, sorted by id."""
        plan = merger.merge([partial('S3'), partial('S1'), partial('S2'), partial('S1')])

        assert [s.id for s in plan.stories] == ['S1', 'S2', 'S3']

    def test_duplicate_story_unions_test_cases(self, merger, make_story):
        """Test a repeated story keeps its first fields and gains new test cases."""
        first = make_story('S1', 'TC2', 'TC1', title='Users')
        second = make_story('S1', 'TC3', 'TC1', title='Users (again)')

        plan = merger.merge([{'stories': [first]}, {'stories': [second]}])

        assert len(plan.stories) == 1
        assert plan.stories[0].title == 'Users'
        assert [tc.id for tc in plan.stories[0].test_cases] == ['TC1', 'TC2', 'TC3']

    def test_stories_keyed_by_title_without_id(self, merger):
        """Test stories without an id are keyed by their title."""
        plan = merger.merge([
            {'stories': [{'title': 'Checkout', 'testCases': [{'title': 'pay'}]}]},
            {'stories': [{'title': 'checkout', 'testCases': [{'title': 'refund'}]}]},
        ])

        assert len(plan.stories) == 1
        assert [tc.title for tc in plan.stories[0].test_cases] == ['pay', 'refund']

    def test_totality(self, merger, partial):
        """Test every input story and test case survives the merge."""
        partials = [partial('S1', 'TC1', 'TC2'), partial('S2', 'TC3'), partial('S1', 'TC4')]

        plan = merger.merge(partials)

        assert case_ids(plan) == {('S1', 'TC1'), ('S1', 'TC2'), ('S2', 'TC3'), ('S1', 'TC4')}

    def test_non_latin_titles_kept_apart(self, merger):
        """Test stories titled in non-Latin script are not collapsed together."""
        plan = merger.merge([
            {'stories': [{'id': '', 'title': '获取用户', 'testCases': [{'id': 'TC1'}]}]},
            {'stories': [{'id': '', 'title': '删除用户', 'testCases': [{'id': 'TC2'}]}]},
        ])

        assert sorted(story.title for story in plan.stories) == ['删除用户', '获取用户']

    def test_stopword_ids_kept_apart(self, merger, partial):
        """Test ids made only of stopwords keep distinct keys."""
        plan = merger.merge([partial('S1', 'A', 'B', 'C', 'An', 'The')])

        assert sorted(tc.id for tc in plan.stories[0].test_cases) == ['A', 'An', 'B', 'C', 'The']

    def test_order_independent_keys(self, merger, partial):
        """Test the story and test case keys do not depend on partial order."""
        a = partial('S1', 'TC1', riskAssessment=[{'category': 'Auth', 'description': 'x'}])
        b = partial('S2', 'TC2', riskAssessment=[{'category': 'Performance', 'description': 'y'}])
        c = partial('S3', 'TC3', riskAssessment=[{'category': 'authentication', 'description': 'z'}])

        forward = merger.merge([a, b, c])
        shuffled = merger.merge([c, a, b])

        assert case_ids(forward) == case_ids(shuffled)
        assert [s.id for s in forward.stories] == [s.id for s in shuffled.stories]
        assert len(forward.risk_assessment) == len(shuffled.risk_assessment) == 2

    def test_partial_without_stories_contributes_sections(self, merger, partial):
        """Test a partial with no stories still adds its sections."""
        plan = merger.merge([
            {'riskAssessment': [{'category': 'Security', 'description': 'Injection'}]},
            partial('S1'),
        ])

        assert [s.id for s in plan.stories] == ['S1']
        assert plan.risk_assessment[0]['category'] == 'Security'

    def test_accepts_test_plan_objects(self, merger, partial):
        """Test TestPlan instances can be merged like wire dicts."""
        plan = merger.merge([TestPlan.from_dict(partial('S1')), partial('S2')])
        assert [s.id for s in plan.stories] == ['S1', 'S2']

    def test_no_partials(self, merger):
        """Test merging nothing raises NoEndpointsError."""
        with pytest.raises(NoEndpointsError):
            merger.merge([])

    def test_no_stories(self, merger):
        """Test a merge without stories raises NoEndpointsError."""
        with pytest.raises(NoEndpointsError, match='no stories'):
            merger.merge([{'stories': []}, {'riskAssessment': [{'category': 'Auth'}]}])


class TestRiskAssessment:
    """Test suite for risk grouping."""

    def test_alias_grouping(self, merger, partial):
        """Test "Auth" and "authentication" become one risk."""
        plan = merger.merge([
            partial('S1', riskAssessment=[{'category': 'Auth', 'description': 'Token leakage'}]),
            partial('S2', riskAssessment=[{'category': 'authentication', 'description': 'Weak passwords'}]),
        ])

        assert len(plan.risk_assessment) == 1
        risk = plan.risk_assessment[0]
        assert risk['category'] == 'Auth'
        assert risk['description'] == '- Token leakage\n- Weak passwords'

    def test_non_latin_categories(self, merger, partial):
        """Test non-ASCII categories keep their label and their own group."""
        plan = merger.merge([
            partial('S1', riskAssessment=[{'category': '认证风险', 'description': 'Token leakage'}]),
            partial('S2', riskAssessment=[{'category': '性能风险', 'description': 'Slow search'}]),
            partial('S3', riskAssessment=[{'category': '认证风险', 'description': 'Weak passwords'}]),
        ])

        assert sorted(r['category'] for r in plan.risk_assessment) == ['性能风险', '认证风险']
        auth = next(r for r in plan.risk_assessment if r['category'] == '认证风险')
        assert auth['description'] == '- Token leakage\n- Weak passwords'

    def test_similarity_at_threshold_groups(self, merger, partial):
        """Test keys exactly at the 0.72 threshold are grouped."""
        plan = merger.merge([partial('S1', riskAssessment=[
            {'category': 'a' * 25, 'description': 'one'},
            {'category': 'a' * 18 + 'b' * 7, 'description': 'two'},
        ])])

        assert len(plan.risk_assessment) == 1
        assert plan.risk_assessment[0]['category'] == 'a' * 25

    def test_similarity_below_threshold_separate(self, merger, partial):
        """Test keys just under the threshold stay separate."""
        plan = merger.merge([partial('S1', riskAssessment=[
            {'category': 'a' * 100, 'description': 'one'},
            {'category': 'a' * 71 + 'b' * 29, 'description': 'two'},
        ])])

        assert len(plan.risk_assessment) == 2

    def test_threshold_from_settings(self, partial):
        """Test a stricter threshold keeps near matches apart."""
        strict = PlanMerger(MergeSettings(similarity_threshold=1.0))
        plan = strict.merge([partial('S1', riskAssessment=[
            {'category': 'a' * 25, 'description': 'one'},
            {'category': 'a' * 18 + 'b' * 7, 'description': 'two'},
        ])])

        assert len(plan.risk_assessment) == 2

    def test_impact_resolution(self, merger, partial):
        """Test the highest impact wins and missing impact defaults to Low."""
        plan = merger.merge([partial('S1', riskAssessment=[
            {'category': 'Auth', 'impact': 'Medium'},
            {'category': 'auth', 'impact': 'high'},
            {'category': 'Performance', 'description': 'Slow search'},
        ])])

        impacts = {r['category']: r['impact'] for r in plan.risk_assessment}
        assert impacts == {'Auth': 'High', 'Performance': 'Low'}

    def test_sorted_by_category(self, merger, partial):
        """Test risks are sorted by normalized category."""
        plan = merger.merge([partial('S1', riskAssessment=[
            {'category': 'Security', 'description': 'x'},
            {'category': 'Auth', 'description': 'y'},
        ])])

        assert [r['category'] for r in plan.risk_assessment] == ['Auth', 'Security']

    def test_mitigations_accumulated(self, merger, partial):
        """Test distinct mitigations are bulleted and repeats dropped."""
        plan = merger.merge([partial('S1', riskAssessment=[
            {'category': 'Auth', 'mitigation': 'Rotate keys'},
            {'category': 'Auth', 'mitigation': 'Rotate keys'},
            {'category': 'Auth', 'mitigation': 'Use MFA'},
        ])])

        assert plan.risk_assessment[0]['mitigation'] == '- Rotate keys\n- Use MFA'


class TestOtherSections:
    """Test suite for deliverables, criteria, roles and staffing."""

    def test_deliverables(self, merger, partial):
        """Test synonym titles merge and formats are joined sorted."""
        plan = merger.merge([
            partial('S1', deliverables=[{'title': 'Bug Report', 'format': 'PDF',
                                         'frequency': 'Weekly', 'description': 'Defects found'}]),
            partial('S2', deliverables=[{'title': 'Defect Log', 'format': 'Excel',
                                         'frequency': 'Weekly', 'description': 'Open defects'}]),
        ])

        assert plan.deliverables == [{
            'title': 'Bug Report',
            'description': '- Defects found\n- Open defects',
            'format': 'Excel, PDF',
            'frequency': 'Weekly',
        }]

    def test_success_criteria(self, merger, partial):
        """Test criteria group by category and thresholds are joined."""
        plan = merger.merge([partial('S1', successCriteria=[
            {'category': 'Performance', 'criteria': 'p95 latency', 'threshold': '<200ms'},
            {'category': 'perf', 'criteria': 'Error rate', 'threshold': '95%'},
        ])])

        assert plan.success_criteria == [{
            'category': 'Performance',
            'criteria': '- p95 latency\n- Error rate',
            'threshold': '95%, <200ms',
        }]

    def test_roles(self, merger, partial):
        """Test responsibilities of the same role are bulleted."""
        plan = merger.merge([
            partial('S1', rolesAndResponsibility=[{'role': 'QA Lead', 'responsibility': 'Owns the plan'}]),
            partial('S2', rolesAndResponsibility=[{'role': 'qa lead', 'responsibility': 'Reviews results'}]),
        ])

        assert plan.roles_and_responsibility == [
            {'role': 'QA Lead', 'responsibility': '- Owns the plan\n- Reviews results'}
        ]

    def test_staffing(self, merger, partial):
        """Test skills are unioned per role and entries without a role dropped."""
        plan = merger.merge([
            partial('S1', staffingAndTraining=[{'role': 'QA Engineer', 'skills': ['pytest', 'API']}]),
            partial('S2', staffingAndTraining=[
                {'role': 'qa engineer', 'skills': ['API', 'k6']},
                {'skills': ['orphan']},
            ]),
        ])

        assert plan.staffing_and_training == [
            {'role': 'QA Engineer', 'skills': ['API', 'k6', 'pytest']}
        ]

    def test_description_sections(self, merger, partial):
        """Test description-only sections group identical text."""
        plan = merger.merge([
            partial('S1', entryCriteria=[{'description': 'Environment ready'}]),
            partial('S2', entryCriteria=[{'description': 'Environment ready'}, 'Test data loaded']),
        ])

        assert plan.entry_criteria == [
            {'description': '- Environment ready'},
            {'description': '- Test data loaded'},
        ]

    def test_string_sections(self, merger, partial):
        """Test plain string sections are trimmed, unique and sorted."""
        plan = merger.merge([
            partial('S1', featuresToBeTested=['Login', 'Checkout']),
            partial('S2', featuresToBeTested=[' Login ', '', 'checkout']),
        ])

        assert plan.features_to_be_tested == ['Checkout', 'checkout', 'Login']

    def test_references_and_test_items(self, merger, partial):
        """Test exact duplicates are removed from references and test items."""
        ref = {'title': 'API docs', 'url': 'https://docs.example.com'}
        item = {'id': 'TI-1', 'method': 'GET', 'endpoint': '/api/users', 'description': 'List'}
        plan = merger.merge([
            partial('S1', references=[ref], testItems=[item]),
            partial('S2', references=[dict(ref)], testItems=[dict(item, description='List users')]),
        ])

        assert plan.references == [ref]
        assert plan.test_items == [item]

    def test_every_section_present(self, merger, partial):
        """Test sections missing from every partial come back empty."""
        data = merger.merge([partial('S1')]).to_dict()

        assert data['riskAssessment'] == []
        assert data['negativeScenarios'] == []
        assert data['environmentRequirements'] == {'hardware': [], 'software': [], 'network': ''}
        assert data['traceabilityMatrix'] == {}


class TestScalarsAndMatrix:
    """Test suite for title, environment and traceability merging."""

    def test_first_non_empty_title(self, merger, partial):
        """Test the first non-empty title and description win."""
        plan = merger.merge([
            partial('S1', title='  '),
            partial('S2', title='Users API', description='First'),
            partial('S3', title='Other', description='Second'),
        ])

        assert plan.title == 'Users API'
        assert plan.description == 'First'

    def test_first_populated_environment(self, merger, partial):
        """Test the first populated environment block is kept."""
        empty = {'hardware': [], 'software': [], 'network': ''}
        plan = merger.merge([
            partial('S1', environmentRequirements=empty),
            partial('S2', environmentRequirements={'hardware': ['4 vCPU'], 'software': [], 'network': ''}),
            partial('S3', environmentRequirements={'hardware': ['8 vCPU'], 'software': ['Chrome'],
                                                   'network': '1 Gbps'}),
        ])

        assert plan.environment_requirements == {'hardware': ['4 vCPU'], 'software': [], 'network': ''}

    def test_traceability_union(self, merger, partial):
        """Test requirement ids are merged, deduplicated and sorted."""
        plan = merger.merge([
            partial('S1', traceabilityMatrix={'REQ-2': ['TC-2', 'TC-1']}),
            partial('S2', traceabilityMatrix={'REQ-1': ['TC-3'], 'REQ-2': ['TC-1', ' ']}),
        ])

        assert plan.traceability_matrix == {'REQ-1': ['TC-3'], 'REQ-2': ['TC-1', 'TC-2']}
        assert list(plan.traceability_matrix) == ['REQ-1', 'REQ-2']


class TestJoinLines:
    """Test suite for join_lines()."""

    def test_bullets(self):
        """Test lines become bullets and empty lines are skipped."""
        assert join_lines(['a', '', 'b']) == '- a\n- b'
        assert join_lines([]) == ''
