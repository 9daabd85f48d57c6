"""
TracePlan test plan data model.

The merged artifact handed to exporters and callers. Field names are
snake_case in Python; to_dict()/from_dict() use the camelCase names of the
JSON schema the model is asked to follow.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Auxiliary list-valued sections, by wire name, in schema order
LIST_SECTIONS = [
    'riskAssessment',
    'deliverables',
    'successCriteria',
    'rolesAndResponsibility',
    'entryCriteria',
    'exitCriteria',
    'testExecutionStrategy',
    'testSchedule',
    'toolsAndAutomationStrategy',
    'approvalsAndSignoffs',
    'references',
    'testItems',
    'featuresToBeTested',
    'featuresNotToBeTested',
    'staffingAndTraining',
    'passCriteria',
    'failCriteria',
    'suspensionCriteria',
    'testDataRequirements',
    'negativeScenarios',
]

# wire name -> TestPlan attribute
_SECTION_ATTRS = {
    'riskAssessment': 'risk_assessment',
    'deliverables': 'deliverables',
    'successCriteria': 'success_criteria',
    'rolesAndResponsibility': 'roles_and_responsibility',
    'entryCriteria': 'entry_criteria',
    'exitCriteria': 'exit_criteria',
    'testExecutionStrategy': 'test_execution_strategy',
    'testSchedule': 'test_schedule',
    'toolsAndAutomationStrategy': 'tools_and_automation_strategy',
    'approvalsAndSignoffs': 'approvals_and_signoffs',
    'references': 'references',
    'testItems': 'test_items',
    'featuresToBeTested': 'features_to_be_tested',
    'featuresNotToBeTested': 'features_not_to_be_tested',
    'staffingAndTraining': 'staffing_and_training',
    'passCriteria': 'pass_criteria',
    'failCriteria': 'fail_criteria',
    'suspensionCriteria': 'suspension_criteria',
    'testDataRequirements': 'test_data_requirements',
    'negativeScenarios': 'negative_scenarios',
}


def empty_environment() -> Dict[str, Any]:
    return {'hardware': [], 'software': [], 'network': ''}


def empty_partial() -> Dict[str, Any]:
    """Return a partial artifact with every collection present and empty."""
    partial: Dict[str, Any] = {
        'title': '',
        'description': '',
        'stories': [],
        'environmentRequirements': empty_environment(),
        'traceabilityMatrix': {},
    }
    for section in LIST_SECTIONS:
        partial[section] = []
    return partial


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return str(value)


@dataclass
class ApiDetails:
    """HTTP request a test case exercises."""
    method: str = ''
    endpoint: str = ''
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ''
    expected_status: int = 200

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ApiDetails':
        data = data if isinstance(data, dict) else {}
        headers = data.get('headers')
        body = data.get('body')
        if body is not None and not isinstance(body, str):
            # Models sometimes return the body as a JSON object
            body = json.dumps(body, indent=2)
        try:
            expected_status = int(data.get('expectedStatus', 200))
        except (TypeError, ValueError):
            expected_status = 200

        return cls(
            method=_as_text(data.get('method')).upper(),
            endpoint=_as_text(data.get('endpoint')),
            headers={str(k): _as_text(v) for k, v in headers.items()} if isinstance(headers, dict) else {},
            body=body or '',
            expected_status=expected_status
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'endpoint': self.endpoint,
            'headers': dict(self.headers),
            'body': self.body,
            'expectedStatus': self.expected_status,
        }


@dataclass
class TestCase:
    """A single positive or negative test case."""
    id: str
    title: str
    description: str = ''
    steps: List[str] = field(default_factory=list)
    expected_result: str = ''
    api_details: ApiDetails = field(default_factory=ApiDetails)
    severity: str = ''
    priority: Optional[int] = None
    req_id: str = ''

    # Not a pytest test class despite the name
    __test__ = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TestCase':
        priority = data.get('priority')
        try:
            priority = int(priority) if priority is not None and priority != '' else None
        except (TypeError, ValueError):
            priority = None

        return cls(
            id=_as_text(data.get('id')),
            title=_as_text(data.get('title')),
            description=_as_text(data.get('description')),
            steps=[_as_text(s) for s in _as_list(data.get('steps'))],
            expected_result=_as_text(data.get('expectedResult')),
            api_details=ApiDetails.from_dict(data.get('apiDetails')),
            severity=_as_text(data.get('severity')),
            priority=priority,
            req_id=_as_text(data.get('reqId'))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'steps': list(self.steps),
            'expectedResult': self.expected_result,
            'apiDetails': self.api_details.to_dict(),
            'severity': self.severity,
            'priority': self.priority,
            'reqId': self.req_id,
        }


@dataclass
class Story:
    """A group of related test cases."""
    id: str
    title: str
    description: str = ''
    test_cases: List[TestCase] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Story':
        return cls(
            id=_as_text(data.get('id')),
            title=_as_text(data.get('title')),
            description=_as_text(data.get('description')),
            test_cases=[
                TestCase.from_dict(tc) for tc in _as_list(data.get('testCases'))
                if isinstance(tc, dict)
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'testCases': [tc.to_dict() for tc in self.test_cases],
        }


@dataclass
class TestPlan:
    """
    Merged test artifact.

    Auxiliary sections keep the shape the model returns (lists of dicts or
    strings); after a merge every one of them is present, possibly empty.
    """
    title: str = ''
    description: str = ''
    stories: List[Story] = field(default_factory=list)
    risk_assessment: List[Dict[str, Any]] = field(default_factory=list)
    deliverables: List[Dict[str, Any]] = field(default_factory=list)
    success_criteria: List[Dict[str, Any]] = field(default_factory=list)
    roles_and_responsibility: List[Dict[str, Any]] = field(default_factory=list)
    entry_criteria: List[Dict[str, Any]] = field(default_factory=list)
    exit_criteria: List[Dict[str, Any]] = field(default_factory=list)
    test_execution_strategy: List[Dict[str, Any]] = field(default_factory=list)
    test_schedule: List[Dict[str, Any]] = field(default_factory=list)
    tools_and_automation_strategy: List[Dict[str, Any]] = field(default_factory=list)
    approvals_and_signoffs: List[Dict[str, Any]] = field(default_factory=list)
    references: List[Dict[str, Any]] = field(default_factory=list)
    test_items: List[Dict[str, Any]] = field(default_factory=list)
    features_to_be_tested: List[str] = field(default_factory=list)
    features_not_to_be_tested: List[str] = field(default_factory=list)
    staffing_and_training: List[Dict[str, Any]] = field(default_factory=list)
    pass_criteria: List[str] = field(default_factory=list)
    fail_criteria: List[str] = field(default_factory=list)
    suspension_criteria: List[str] = field(default_factory=list)
    environment_requirements: Dict[str, Any] = field(default_factory=empty_environment)
    test_data_requirements: List[str] = field(default_factory=list)
    traceability_matrix: Dict[str, List[str]] = field(default_factory=dict)
    negative_scenarios: List[str] = field(default_factory=list)

    # Not a pytest test class despite the name
    __test__ = False

    @property
    def test_case_count(self) -> int:
        return sum(len(story.test_cases) for story in self.stories)

    def endpoints(self) -> List[str]:
        """Unique endpoints referenced by test cases, in first-seen order."""
        seen = []
        for story in self.stories:
            for tc in story.test_cases:
                endpoint = tc.api_details.endpoint.strip()
                if endpoint and endpoint not in seen:
                    seen.append(endpoint)
        return seen

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TestPlan':
        """Build a plan from a wire-format dict; missing sections become empty."""
        env = data.get('environmentRequirements') or {}
        matrix = data.get('traceabilityMatrix') or {}

        plan = cls(
            title=_as_text(data.get('title')),
            description=_as_text(data.get('description')),
            stories=[Story.from_dict(s) for s in _as_list(data.get('stories')) if isinstance(s, dict)],
            environment_requirements={
                'hardware': [_as_text(h) for h in _as_list(env.get('hardware'))],
                'software': [_as_text(s) for s in _as_list(env.get('software'))],
                'network': _as_text(env.get('network')),
            } if isinstance(env, dict) else empty_environment(),
            traceability_matrix={
                str(k): [_as_text(v) for v in _as_list(vals)]
                for k, vals in matrix.items()
            } if isinstance(matrix, dict) else {}
        )
        for section, attr in _SECTION_ATTRS.items():
            setattr(plan, attr, list(_as_list(data.get(section))))
        return plan

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'title': self.title,
            'description': self.description,
            'stories': [story.to_dict() for story in self.stories],
        }
        for section, attr in _SECTION_ATTRS.items():
            data[section] = list(getattr(self, attr))
        data['environmentRequirements'] = {
            'hardware': list(self.environment_requirements.get('hardware', [])),
            'software': list(self.environment_requirements.get('software', [])),
            'network': self.environment_requirements.get('network', ''),
        }
        data['traceabilityMatrix'] = {k: list(v) for k, v in self.traceability_matrix.items()}
        return data
