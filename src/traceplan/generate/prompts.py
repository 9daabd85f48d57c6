"""
Prompt construction for batch test generation.

Each prompt carries the output skeleton for the artifact type, the unique
METHOD URL pairs in the batch, the coverage rules, and the batch itself as
JSON context. Prompts are deterministic: the same batch and type always
produce the same text.
"""

import json
from textwrap import dedent
from typing import Iterable, List, Union

from ..ingest.records import TrafficRecord
from .batcher import GenerationBatch

SYSTEM_PROMPT = (
    'You are a test automation expert. Generate detailed, production-ready '
    'test artifacts for the API traffic you are given. Respond with JSON only.'
)

_TEST_CASE_SCHEMA = dedent("""
    {
      "id": "string",
      "title": "string",
      "description": "string",
      "steps": ["string"],
      "expectedResult": "string",
      "apiDetails": {
        "method": "string",
        "endpoint": "string",
        "headers": { "string": "string" },
        "body": "string",
        "expectedStatus": 200
      },
      "severity": "High|Medium|Low",
      "priority": 1,
      "reqId": "string"
    }
""").strip()

_STORY_SCHEMA = dedent("""
    {
      "id": "string",
      "title": "string",
      "description": "string",
      "testCases": [TEST_CASE]
    }
""").strip().replace('TEST_CASE', _TEST_CASE_SCHEMA)

TEST_PLAN_SKELETON = dedent("""
    You MUST respond only with a JSON object matching this exact structure (no markdown or commentary):
    {
      "title": "string",
      "description": "string",
      "stories": [STORY],
      "riskAssessment": [
        { "category": "string", "description": "string", "mitigation": "string", "impact": "Low|Medium|High" }
      ],
      "deliverables": [
        { "title": "string", "description": "string", "format": "string", "frequency": "string" }
      ],
      "successCriteria": [
        { "category": "string", "criteria": "string", "threshold": "string" }
      ],
      "rolesAndResponsibility": [
        { "role": "string", "responsibility": "string" }
      ],
      "exitCriteria": [{ "description": "string" }],
      "testExecutionStrategy": [{ "description": "string" }],
      "entryCriteria": [{ "description": "string" }],
      "testSchedule": [{ "description": "string" }],
      "toolsAndAutomationStrategy": [{ "description": "string" }],
      "approvalsAndSignoffs": [{ "description": "string" }],
      "references": [{ "title": "string", "url": "string" }],
      "testItems": [
        { "id": "string", "description": "string", "endpoint": "string", "method": "string" }
      ],
      "featuresToBeTested": ["string"],
      "featuresNotToBeTested": ["string"],
      "staffingAndTraining": [{ "role": "string", "skills": ["string"] }],
      "passCriteria": ["string"],
      "failCriteria": ["string"],
      "suspensionCriteria": ["string"],
      "environmentRequirements": {
        "hardware": ["string"],
        "software": ["string"],
        "network": "string"
      },
      "testDataRequirements": ["string"],
      "traceabilityMatrix": { "string": ["string"] },
      "negativeScenarios": ["string"]
    }
""").strip().replace('STORY', _STORY_SCHEMA)

STORIES_SKELETON = dedent("""
    You MUST respond only with a JSON object matching this exact structure (no markdown or commentary):
    {
      "stories": [STORY]
    }
""").strip().replace('STORY', _STORY_SCHEMA)

CODE_SKELETON = dedent("""
    You MUST respond only with a JSON object matching this exact structure (no markdown or commentary):
    {
      "stories": [
        {
          "id": "unique-id",
          "title": "Story Title",
          "description": "Detailed story description",
          "testCases": [
            {
              "id": "tc-unique-id",
              "title": "Test Case Title",
              "description": "Detailed test case description",
              "apiDetails": {
                "method": "GET/POST/PUT/DELETE",
                "endpoint": "url/api/endpoint",
                "headers": { "header-name": "value" },
                "body": "request body if applicable",
                "expectedStatus": 200
              }
            }
          ]
        }
      ]
    }
""").strip()

NEGATIVE_SCENARIO_RULES = [
    'invalid identifier (e.g. malformed UUID)',
    'missing required parameter',
    'malformed JSON payload',
    'expired or invalid auth token',
    'unexpected HTTP method',
]

TEST_PLAN_INSTRUCTIONS = dedent("""
    Generate the test plan strictly as valid JSON following the structure above. Do not include any commentary, markdown, or explanation.

    Instructions for content generation:
    1. Provide a detailed, meaningful "title" for the test plan.
    2. In the "description", summarize the high-level test objectives and scope inferred from what the endpoints do.
    3. Define multiple "stories". For each story:
       - Use a unique "id" like STORY-<ShortTitle>-<##>
       - Include clear objectives and scope in the "description"
       - Add multiple "testCases", each with a unique "id" like TC-<Positive/Negative ShortTitle>-<##>, "title", "description", step-by-step "steps", "expectedResult", a full "apiDetails" object (method, endpoint, headers, body, expectedStatus), severity (High, Medium, or Low), priority (1-5), and requirement ID ("reqId")
    4. Cover every provided METHOD + URL pair with both positive and negative test cases. Each test case must reference the correct endpoint.
    5. Add "riskAssessment" items with category, description, mitigation, and impact (Low | Medium | High).
    6. Define all "deliverables" with title, description, format, and frequency.
    7. Include measurable "successCriteria" with threshold values.
    8. Populate "rolesAndResponsibility"; every role maps to a specific responsibility.
    9. Fill "environmentRequirements" with hardware (OS, CPU, RAM), software (browser versions, databases) and network details (bandwidth, latency).
    10. Provide the complete list of "testDataRequirements".
    11. Fill the mandatory sections: "testSchedule" with milestones from the current date, a stepwise "testExecutionStrategy", "entryCriteria", "toolsAndAutomationStrategy" with API testing tools and usage plan, "approvalsAndSignoffs" from the agile team roles, and "exitCriteria".
    12. Include the top-level arrays "passCriteria", "failCriteria" and "suspensionCriteria".
    13. Populate "traceabilityMatrix" by mapping each requirement ID (e.g. REQ-001) to all related test case IDs (e.g. ["TC-001", "TC-002"]).
    14. List both "featuresToBeTested" and "featuresNotToBeTested".
    15. Add a "staffingAndTraining" section specifying roles and skill needs.
    16. Add comprehensive "negativeScenarios" covering invalid input, missing headers, auth failures, etc.

    Do not add fields or deviate from the required format. Output ONLY the JSON object.
""").strip()

TEST_SCENARIO_INSTRUCTIONS = dedent("""
    For each unique METHOD + URL pair include all positive and all negative test cases. Do not group or skip endpoints.

    Your response MUST include ONLY stories with:
    1. A detailed scenario title
    2. A scenario description with Positive and Negative headlines
    3. For each story: scenario objectives, preconditions and setup, multiple test cases with detailed steps, dependencies between scenarios, and expected outcomes
    4. Complete API details for each test case
    5. Validation criteria
    6. Risk considerations specific to each scenario
    7. Success criteria for scenario completion
""").strip()

TEST_CASES_INSTRUCTIONS = dedent("""
    For each unique METHOD + URL pair include all positive and all negative test cases. Do not group or skip endpoints.

    Your response MUST include ONLY stories whose test cases have:
    1. A unique ID and a title marked Positive or Negative
    2. A detailed description
    3. Step-by-step instructions
    4. Complete API request details for the endpoint
    5. Expected results and validation points
    6. Error scenarios and edge cases, prerequisites and cleanup steps
""").strip()

CODE_INSTRUCTIONS = dedent("""
    Generate separate Playwright API test cases with these requirements:
    - Each endpoint and HTTP method gets its own tests.
    - Include positive tests (valid inputs, successful responses) and negative tests (invalid inputs, missing fields, unauthorized access, wrong HTTP methods).
    - Use unique, concise, descriptive test titles.
    - Every test case MUST carry apiDetails with method, endpoint, headers, body and expectedStatus so it can be rendered as Playwright code.
    - Never include HTTP/2 pseudo-headers (":method", ":path", etc.) in apiDetails.headers.
""").strip()

_SKELETONS = {
    'testPlan': TEST_PLAN_SKELETON,
    'testScenario': STORIES_SKELETON,
    'testCases': STORIES_SKELETON,
    'code': CODE_SKELETON,
}

_INSTRUCTIONS = {
    'testPlan': TEST_PLAN_INSTRUCTIONS,
    'testScenario': TEST_SCENARIO_INSTRUCTIONS,
    'testCases': TEST_CASES_INSTRUCTIONS,
    'code': CODE_INSTRUCTIONS,
}


def unique_endpoints(records: Iterable[TrafficRecord]) -> List[str]:
    """Unique "METHOD URL" labels in first-seen order."""
    labels: List[str] = []
    for record in records:
        if record.label not in labels:
            labels.append(record.label)
    return labels


def coverage_rules(endpoint_count: int) -> str:
    """Combinatorial coverage rules, ending with the endpoint count."""
    negatives = '\n'.join(f"     - {rule}" for rule in NEGATIVE_SCENARIO_RULES)
    return dedent("""
        Generate a comprehensive test suite for the provided unique API endpoints.

        Key Instructions:
        1. Treat each endpoint as a UNIQUE combination of METHOD + URL.
        2. Generate test cases independently for each endpoint. DO NOT group or merge endpoints.
        3. Cover all permutations of:
           - Query parameters: valid and invalid combinations, boundary values, empty, null
           - Request body: valid/invalid key-value pairs, malformed payloads, boundary values
           - Headers: valid/invalid headers, missing required headers
        4. Include:
           - Positive test cases: all valid combinations, including edge cases
           - Negative test cases: invalid/missing parameters, wrong types, malformed JSON, boundary violations, invalid HTTP methods, missing/invalid auth, rate limiting, server errors
           - At least one negative scenario per endpoint covering:
        NEGATIVES

        Output Requirements:
        - Each endpoint must have its own independent positive and negative test cases.
        - Do not skip endpoints or combinations; keep the number of cases per combination reasonable.

        TOTAL NUMBER OF ENDPOINTS: COUNT
    """).strip().replace('NEGATIVES', negatives).replace('COUNT', str(endpoint_count))


def build_prompt(
    artifact_type: str,
    records: Union[GenerationBatch, Iterable[TrafficRecord]]
) -> str:
    """
    Build the user prompt for one batch.

    Args:
        artifact_type: testPlan, testScenario, testCases or code
        records: A GenerationBatch or the records it contains

    Returns:
        Prompt text

    Raises:
        ValueError: If artifact_type is not supported
    """
    if artifact_type not in _SKELETONS:
        raise ValueError(f"Invalid generation type: {artifact_type}")

    if isinstance(records, GenerationBatch):
        records = records.records
    records = list(records)

    endpoints = unique_endpoints(records)
    endpoint_list = '\n'.join(f"- {label}" for label in endpoints)
    context = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)

    sections = [_SKELETONS[artifact_type]]

    if artifact_type != 'code':
        sections.append(
            'Analyze these API requests and generate a test suite with a SEPARATE set of test '
            f"cases for EACH unique API endpoint for the requested {artifact_type}. Every "
            'distinct endpoint in the data MUST be represented; missing endpoint coverage '
            'is NOT acceptable.'
        )

    sections.append(f"The dataset includes the following unique API endpoints:\n{endpoint_list}")

    sections.append(coverage_rules(len(endpoints)))

    sections.append(f"Captured requests (JSON):\n{context}")
    sections.append(_INSTRUCTIONS[artifact_type])

    return '\n\n'.join(sections)
