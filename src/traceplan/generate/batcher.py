"""
Split normalized records into model-sized batches.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..ingest.records import TrafficRecord

if TYPE_CHECKING:
    from ..config import GeneratorConfig

# Executable test code is verbose; keep code batches small for every model
CODE_BATCH_SIZE = 2


@dataclass(frozen=True)
class GenerationBatch:
    """A contiguous, non-empty slice of records sent in one model call."""
    index: int
    total: int
    records: Tuple[TrafficRecord, ...]

    def __len__(self) -> int:
        return len(self.records)

    @property
    def number(self) -> int:
        """1-based batch number for log messages."""
        return self.index + 1


def batch(records: Sequence[TrafficRecord], size: int) -> List[GenerationBatch]:
    """
    Chunk records into contiguous batches of at most `size`.

    Concatenating the batches yields the input unchanged.

    Args:
        records: Records in order
        size: Maximum batch size (must be >= 1)

    Returns:
        List of batches; empty input returns []

    Raises:
        ValueError: If size is less than 1
    """
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")

    chunks = [tuple(records[i:i + size]) for i in range(0, len(records), size)]
    return [
        GenerationBatch(index=i, total=len(chunks), records=chunk)
        for i, chunk in enumerate(chunks)
    ]


class BatchSizePolicy:
    """Choose the batch size for a model and artifact type."""

    def __init__(self, config: Optional['GeneratorConfig'] = None):
        if config is None:
            from ..config import GeneratorConfig
            config = GeneratorConfig()
        self.config = config

    def resolve(self, artifact_type: str) -> int:
        """
        Resolve the batch size.

        Rules:
        - code artifacts: always 2 endpoints per call
        - chat models: as many endpoints as the completion budget allows
        - reasoning models: the configured batch_size

        Args:
            artifact_type: testPlan, testScenario, testCases or code

        Returns:
            Positive batch size
        """
        if artifact_type == 'code':
            return CODE_BATCH_SIZE
        if self.config.family == 'chat':
            return max(1, self.config.max_tokens // self.config.tokens_per_endpoint)
        return max(1, self.config.batch_size)
