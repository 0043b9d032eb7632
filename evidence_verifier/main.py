"""Command-line entry point for the evidence verifier."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional

from .domain.exceptions import VerificationInputError
from .domain.models.verification import OverallStatus, VerificationRecord
from .infrastructure.dependencies import ServiceContainer

logger = logging.getLogger(__name__)

EXIT_CODES: Dict[OverallStatus, int] = {
    OverallStatus.VERIFIED: 0,
    OverallStatus.NEEDS_REVIEW: 1,
    OverallStatus.FAILED: 2,
    OverallStatus.INCOMPLETE: 3,
}
EXIT_INPUT_ERROR = 4


def print_report(record: VerificationRecord) -> None:
    """Print a human-readable summary of a verification record."""
    print(f"Document: {record.document_hash}")
    print(f"Chain:    {record.chain_hash}")
    print("-----------------------------------------------------")
    for stage in record.stages:
        line = f"{stage.stage.value:<10} {stage.status.value.upper():<8}"
        if stage.skip_reason:
            line += f" ({stage.skip_reason})"
        elif stage.issues:
            line += f" {len(stage.issues)} issue(s)"
        print(line)

    for label, issues in (("Blocking issues", record.blocking_issues), ("Warnings", record.warnings)):
        if issues:
            print(f"\n{label}:")
            for i, issue in enumerate(issues, 1):
                where = f" line {issue.line}" if issue.line else ""
                source = f" [{issue.source_id}]" if issue.source_id else ""
                print(f"{i}. {issue.type.value}{source}{where}: {issue.message}")

    print(f"\nStatus: {record.status.value}")
    print("Safe to publish." if record.is_publishable else "Not safe to publish.")


async def cmd_verify(args: argparse.Namespace, container: ServiceContainer) -> int:
    """Run the pipeline over a case document."""
    try:
        case = await container.get_case(args.case_dir)
        pipeline = container.pipeline_for(case, False if args.no_stop_on_fail else None)
        document = await case.evidence_store.read_document(args.document or container.settings.document_path)
        record = await pipeline.verify(document)
    finally:
        await container.shutdown()

    if not args.no_persist:
        await case.record_store.write(record)

    if args.json:
        print(json.dumps(record.canonical_dict(), indent=2, ensure_ascii=False))
    else:
        print_report(record)
    return EXIT_CODES[record.status]


async def cmd_extract(args: argparse.Namespace, container: ServiceContainer) -> int:
    """Extract and register claims from captured sources."""
    try:
        case = await container.get_case(args.case_dir)
        for source_id in args.source_ids:
            report = await case.extractor.process_source(source_id, use_oracle=args.oracle)
            print(
                f"{source_id}: {len(report.registered)} registered, "
                f"{len(report.duplicates)} duplicates, {len(report.rejected)} rejected"
            )
            if report.oracle_error:
                print(f"  oracle: {report.oracle_error}")
        print(f"Registry now holds {len(case.registry)} claims")
    finally:
        await container.shutdown()
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="evidence-verifier",
        description="Verify that a document's cited statements are backed by captured evidence",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser("verify", help="Run the verification pipeline")
    verify_parser.add_argument("case_dir", help="Case directory")
    verify_parser.add_argument("--document", help="Document path (default: articles/full.md)")
    verify_parser.add_argument(
        "--no-stop-on-fail",
        action="store_true",
        help="Run every stage even after a failure",
    )
    verify_parser.add_argument("--no-persist", action="store_true", help="Do not write the record")
    verify_parser.add_argument("--json", action="store_true", help="Print the record as JSON")
    verify_parser.set_defaults(func=cmd_verify)

    extract_parser = subparsers.add_parser("extract", help="Extract claims from captured sources")
    extract_parser.add_argument("case_dir", help="Case directory")
    extract_parser.add_argument("source_ids", nargs="+", metavar="SOURCE_ID", help="Sources to process")
    extract_parser.add_argument("--oracle", action="store_true", help="Also use the semantic oracle")
    extract_parser.set_defaults(func=cmd_extract)

    return parser


def main(argv: Optional[List[str]] = None, container: Optional[ServiceContainer] = None) -> int:
    """Parse arguments, run the command and return its exit code."""
    args = create_parser().parse_args(argv)
    container = container or ServiceContainer()
    logging.basicConfig(
        level=container.settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        return asyncio.run(args.func(args, container))
    except VerificationInputError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
