"""
Generation driver: one model call per batch, then merge.

Batches run strictly in sequence. A batch whose request fails or whose
reply cannot be decoded is logged and skipped; the remaining batches still
run. Progress is reported as an integer percentage that never decreases.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..common.ai_utils import ChatClient
from ..config import ARTIFACT_TYPES, GeneratorConfig
from ..errors import GenerationFailedError, NoEndpointsError
from ..ingest.records import TrafficRecord
from ..merge.merger import PlanMerger
from ..models import TestPlan
from .batcher import BatchSizePolicy, GenerationBatch, batch
from .decoder import DecodeStatus, decode_response
from .prompts import SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class BatchState(Enum):
    PENDING = 'pending'
    REQUESTED = 'requested'
    PARSED = 'parsed'
    PARSE_FAILED = 'parse_failed'
    REQUEST_FAILED = 'request_failed'


@dataclass
class BatchOutcome:
    """Final state of one batch."""
    index: int
    state: BatchState = BatchState.PENDING
    error: str = ''
    elapsed: float = 0.0
    endpoint_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == BatchState.PARSED


class TestPlanGenerator:
    """
    Drive batch generation against a chat client and merge the results.

    Example:
        client, _, _ = create_chat_client(config)
        generator = TestPlanGenerator(client, config)
        plan = generator.generate(records, 'testCases', on_progress=print)
    """

    # Not a pytest test class despite the name
    __test__ = False

    def __init__(
        self,
        client: ChatClient,
        config: Optional[GeneratorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        merger: Optional[PlanMerger] = None
    ):
        """
        Initialize the generator.

        Args:
            client: Chat client used for every batch
            config: Generator configuration (defaults to GeneratorConfig())
            clock: Monotonic clock used to time batches
            merger: Plan merger (defaults to one built from config.merge)
        """
        self.client = client
        self.config = config or GeneratorConfig()
        self.clock = clock
        self.merger = merger or PlanMerger(self.config.merge)
        self.policy = BatchSizePolicy(self.config)
        self.outcomes: List[BatchOutcome] = []

    def plan_batches(self, records: Sequence[TrafficRecord], artifact_type: str) -> List[GenerationBatch]:
        """Split records using the batch size policy for this model and type."""
        return batch(records, self.policy.resolve(artifact_type))

    def generate(
        self,
        records: Sequence[TrafficRecord],
        artifact_type: str = 'testPlan',
        on_progress: Optional[ProgressCallback] = None
    ) -> TestPlan:
        """
        Generate and merge a test artifact for the given records.

        Args:
            records: Normalized, deduplicated records
            artifact_type: testPlan, testScenario, testCases or code
            on_progress: Called with 0, then after every batch, then 100

        Returns:
            Merged TestPlan

        Raises:
            ValueError: If artifact_type is unknown
            NoEndpointsError: If records is empty or the merge yields no stories
            GenerationFailedError: If no batch produced a usable reply
        """
        if artifact_type not in ARTIFACT_TYPES:
            raise ValueError(f"Invalid generation type: {artifact_type}")
        if not records:
            raise NoEndpointsError('No valid endpoints to generate tests for')

        batches = self.plan_batches(records, artifact_type)
        total = len(batches)
        self.outcomes = [BatchOutcome(index=b.index, endpoint_count=len(b)) for b in batches]
        partials: List[Dict[str, Any]] = []

        logger.info(
            f"Generating {artifact_type} for {len(records)} endpoints in {total} batches "
            f"(model: {getattr(self.client, 'model', '') or self.config.model})"
        )

        if on_progress:
            on_progress(0)

        for i, current in enumerate(batches):
            partial = self._run_batch(current, artifact_type, self.outcomes[i])
            if partial is not None:
                partials.append(partial)

            if on_progress:
                on_progress((i + 1) * 100 // total)

        if on_progress:
            on_progress(100)

        failed = [o for o in self.outcomes if not o.succeeded]
        if failed:
            logger.warning(f"{len(failed)} of {total} batches were skipped")

        if not partials:
            raise GenerationFailedError(
                f"All {total} batches failed; no usable model output"
            )

        return self.merger.merge(partials)

    def _run_batch(
        self,
        current: GenerationBatch,
        artifact_type: str,
        outcome: BatchOutcome
    ) -> Optional[Dict[str, Any]]:
        """Request and decode one batch, recording its outcome."""
        prompt = build_prompt(artifact_type, current)
        started = self.clock()
        outcome.state = BatchState.REQUESTED

        try:
            reply = self.client.complete(SYSTEM_PROMPT, prompt)
        except Exception as e:
            outcome.state = BatchState.REQUEST_FAILED
            outcome.error = str(e) or type(e).__name__
            outcome.elapsed = self.clock() - started
            logger.warning(f"Model request failed for batch {current.number}/{current.total}: {outcome.error}")
            return None

        outcome.elapsed = self.clock() - started
        result = decode_response(reply, artifact_type)

        if result.status != DecodeStatus.OK:
            outcome.state = BatchState.PARSE_FAILED
            outcome.error = f"{result.status.value}: {result.error}"
            logger.warning(
                f"Failed to decode reply for batch {current.number}/{current.total} "
                f"({outcome.error}): {(reply or '')[:200]!r}"
            )
            return None

        outcome.state = BatchState.PARSED
        logger.info(
            f"Batch {current.number}/{current.total}: "
            f"{len(result.partial['stories'])} stories in {outcome.elapsed:.1f}s"
        )
        return result.partial
