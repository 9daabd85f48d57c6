"""
TracePlan

Generate test plans, scenarios, test cases and Playwright API tests from
captured HTTP traffic (HAR files and Postman collections) with an LLM.

Pipeline:
- ingest: parse, filter and deduplicate captured requests
- generate: batch the endpoints, prompt the model, decode replies
- merge: fuzzy-merge per-batch results into one plan
- export: Markdown, text, JSON and Playwright renderings
"""

__version__ = '1.0.0'

from .errors import (
    TracePlanError,
    FormatError,
    NoEndpointsError,
    GenerationFailedError,
    ConfigError,
)
from .models import TestPlan, Story, TestCase, ApiDetails
from .config import GeneratorConfig, MergeSettings
from .ingest import TrafficRecord, TrafficFilter, normalize
from .generate import TestPlanGenerator, build_prompt, decode_response, batch
from .merge import PlanMerger
from .export import render, export_plan

__all__ = [
    # Errors
    'TracePlanError',
    'FormatError',
    'NoEndpointsError',
    'GenerationFailedError',
    'ConfigError',

    # Model
    'TestPlan',
    'Story',
    'TestCase',
    'ApiDetails',

    # Config
    'GeneratorConfig',
    'MergeSettings',

    # Pipeline
    'TrafficRecord',
    'TrafficFilter',
    'normalize',
    'batch',
    'build_prompt',
    'decode_response',
    'TestPlanGenerator',
    'PlanMerger',
    'render',
    'export_plan',
]
