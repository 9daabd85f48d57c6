"""
TracePlan Export Module

Renders merged test plans as Markdown, plain text, JSON and Playwright
API test code.
"""

from .exporters import (
    MarkdownExporter,
    TextExporter,
    JsonExporter,
    render,
    export_plan,
    default_format,
    FORMATS,
    FILE_EXTENSIONS,
)
from .playwright_exporter import PlaywrightExporter, PlaywrightTest

__all__ = [
    'MarkdownExporter',
    'TextExporter',
    'JsonExporter',
    'PlaywrightExporter',
    'PlaywrightTest',
    'render',
    'export_plan',
    'default_format',
    'FORMATS',
    'FILE_EXTENSIONS',
]
