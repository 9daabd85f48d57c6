"""
TracePlan command line interface.

Turns a HAR file or Postman collection into a test plan, test scenarios,
test cases, or Playwright API tests using an LLM provider.

Usage:
    traceplan capture.har --type testPlan -o plan.md

SECURITY: API keys are read from the environment only (OPENAI_API_KEY,
AZURE_OPENAI_API_KEY, ANTHROPIC_API_KEY), never from arguments.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .common.ai_utils import check_connection, create_chat_client
from .config import ARTIFACT_TYPES, PROVIDERS, GeneratorConfig
from .errors import (
    ConfigError,
    FormatError,
    GenerationFailedError,
    NoEndpointsError,
    TracePlanError,
)
from .export import FILE_EXTENSIONS, FORMATS, default_format, export_plan
from .generate import BatchSizePolicy, TestPlanGenerator, batch
from .ingest import TrafficFilter, normalize

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='traceplan',
        description='Generate test plans and API tests from captured HTTP traffic',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full test plan from a browser HAR export
  traceplan capture.har -o plans/checkout.md

  # Test cases from a Postman collection, as JSON
  traceplan api.postman_collection.json --type testCases --format json

  # Playwright API tests via Azure OpenAI
  export AZURE_OPENAI_API_KEY=...
  export AZURE_OPENAI_ENDPOINT=https://my-resource.openai.azure.com
  traceplan capture.har --type code --provider azure --model o3-mini

  # Only keep one API host and preview the batches without calling the model
  traceplan capture.har --host "*.example.com" --dry-run

  # Verify credentials and model name
  traceplan --check
        """
    )

    parser.add_argument('input',
                        nargs='?',
                        help='HAR file or Postman collection (JSON)')

    parser.add_argument('-t', '--type',
                        choices=ARTIFACT_TYPES,
                        default='testPlan',
                        help='Artifact to generate (default: testPlan)')

    parser.add_argument('-f', '--format',
                        choices=FORMATS,
                        help='Output format (default: md, or code for --type code)')

    parser.add_argument('-o', '--output',
                        type=str,
                        help='Output file (default: <input>.<type><ext> next to the input)')

    parser.add_argument('--input-format',
                        choices=['har', 'postman'],
                        help='Skip format detection')

    parser.add_argument('--host',
                        action='append',
                        default=[],
                        help='Only keep requests to this host (repeatable, supports *.example.com)')

    parser.add_argument('--config',
                        type=str,
                        help='YAML config file (provider, model, batching, merge settings)')

    parser.add_argument('--provider',
                        choices=PROVIDERS,
                        help='LLM provider (overrides config and TRACEPLAN_PROVIDER)')

    parser.add_argument('--model',
                        type=str,
                        help='Model or Azure deployment name (overrides config and TRACEPLAN_MODEL)')

    parser.add_argument('--dry-run',
                        action='store_true',
                        help='Normalize the input and print the batch plan without calling the model')

    parser.add_argument('--check',
                        action='store_true',
                        help='Send a short test prompt to verify the provider configuration')

    parser.add_argument('-v', '--verbose',
                        action='store_true',
                        help='Debug logging')

    parser.add_argument('--version',
                        action='version',
                        version=f"%(prog)s {__version__}")

    return parser


def load_config(args: argparse.Namespace) -> GeneratorConfig:
    """Config file + environment, with --provider / --model taking precedence."""
    env = dict(os.environ)
    if args.provider:
        env['TRACEPLAN_PROVIDER'] = args.provider
    if args.model:
        env['TRACEPLAN_MODEL'] = args.model
    return GeneratorConfig.from_env(args.config, environ=env)


def default_output_path(input_path: str, artifact_type: str, fmt: str) -> str:
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}.{artifact_type}{FILE_EXTENSIONS[fmt]}"))


def print_progress(percent: int):
    end = '\n' if percent >= 100 else ''
    print(f"\r  Progress: {percent:3d}%", end=end, flush=True)


def run_check(config: GeneratorConfig) -> int:
    client, _, _ = create_chat_client(config)
    print(f"🔌 Testing {config.provider} connection (model: {config.model})...")
    ok, reply = check_connection(client)
    if ok:
        print(f"✓ Connection OK: {reply[:120]}")
        return 0
    print(f"❌ Connection failed: {reply}")
    return 1


def run(args: argparse.Namespace) -> int:
    config = load_config(args)

    if args.check:
        return run_check(config)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"❌ Input file not found: {input_path}")
        return 1

    print(f"🔍 Reading {input_path}...")
    raw = input_path.read_bytes()
    records = normalize(raw, args.input_format, TrafficFilter(host_filters=args.host))
    print(f"✓ Found {len(records)} unique API endpoints")

    if not records:
        raise NoEndpointsError('No valid API endpoints found in the input')

    if args.dry_run:
        size = BatchSizePolicy(config).resolve(args.type)
        batches = batch(records, size)
        print(f"\n{len(batches)} batches of up to {size} endpoints ({config.model}, {args.type}):")
        for current in batches:
            print(f"  Batch {current.number}/{current.total}")
            for record in current.records:
                print(f"    - {record.label}")
        return 0

    client, _, _ = create_chat_client(config)
    generator = TestPlanGenerator(client, config)

    print(f"\n🤖 Generating {args.type} with {config.model}...")
    plan = generator.generate(records, args.type, on_progress=print_progress)

    skipped = [o for o in generator.outcomes if not o.succeeded]
    if skipped:
        print(f"⚠ {len(skipped)} of {len(generator.outcomes)} batches were skipped (see log for details)")
    print(f"✓ {len(plan.stories)} stories, {plan.test_case_count} test cases")

    fmt = args.format or default_format(args.type)
    if args.type == 'code':
        fmt = 'code'
    output = args.output or default_output_path(str(input_path), args.type, fmt)
    export_plan(plan, args.type, fmt, output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.input and not args.check:
        parser.error('input file is required (or use --check)')

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        return run(args)
    except FormatError as e:
        print(f"\n❌ Invalid input: {e}")
        print("   Expected a HAR file (log.entries) or a Postman collection (v1 or v2.x)")
    except NoEndpointsError as e:
        print(f"\n❌ Nothing to test: {e}")
        print("   Check that the capture contains API calls (not only static assets or analytics)")
    except GenerationFailedError as e:
        print(f"\n❌ Generation failed: {e}")
        print("   The model service may be misconfigured; run: traceplan --check")
    except ConfigError as e:
        print(f"\n❌ Configuration error: {e}")
    except TracePlanError as e:
        print(f"\n❌ Error: {e}")
    except KeyboardInterrupt:
        print("\n⚠ Cancelled by user")
    return 1


if __name__ == '__main__':
    sys.exit(main())
