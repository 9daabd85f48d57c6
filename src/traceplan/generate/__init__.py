"""
TracePlan Generate Module

Batch test-artifact generation against an LLM provider.

This module provides:
- Batch sizing per model family and artifact type
- Deterministic prompt construction
- Tagged decoding of model replies
- Sequential generation driver with progress reporting
"""

from .batcher import GenerationBatch, BatchSizePolicy, batch
from .prompts import SYSTEM_PROMPT, build_prompt
from .decoder import DecodeStatus, DecodeResult, decode_response
from .driver import TestPlanGenerator, BatchState, BatchOutcome

__all__ = [
    # Batcher
    'GenerationBatch',
    'BatchSizePolicy',
    'batch',

    # Prompts
    'SYSTEM_PROMPT',
    'build_prompt',

    # Decoder
    'DecodeStatus',
    'DecodeResult',
    'decode_response',

    # Driver
    'TestPlanGenerator',
    'BatchState',
    'BatchOutcome',
]
