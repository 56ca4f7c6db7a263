"""Command line entry point for the case duplicate checker.

Loads environment variables, validates configuration, and checks a draft
case report against a file of stored cases.

Usage:
    python main.py check --case draft.json --existing cases.json [--json]

Exit codes: 0 = no likely duplicate, 2 = likely duplicate, 1 = error.
"""
from dotenv import load_dotenv
import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Load environment variables first, before any other imports
load_dotenv()

from pydantic import ValidationError

from casematch.config import get_config, reload_config
from casematch.matching.detector import DuplicateCaseDetector, DuplicateCheckResult
from casematch.models import CaseDraft, CaseRecord
from casematch.utils.logger import configure_logging, log_error, log_info

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DUPLICATE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check a case report for likely duplicates.")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Compare a draft case with stored cases.")
    check.add_argument('--case', required=True, type=Path, help='JSON file with the draft case.')
    check.add_argument('--existing', required=True, type=Path, help='JSON file with a list of stored cases.')
    check.add_argument('--threshold', type=float, help='Overall similarity that flags a duplicate.')
    check.add_argument('--limit', type=int, help='Most recent stored cases to compare (0 = all).')
    check.add_argument('--provider', choices=['openai', 'bedrock'], help='LLM provider for text/image scores.')
    check.add_argument('--json', dest='as_json', action='store_true', help='Print the report as JSON.')
    return parser


def load_cases(draft_path: Path, existing_path: Path):
    draft = CaseDraft(**json.loads(draft_path.read_text(encoding="utf-8")))
    raw_existing = json.loads(existing_path.read_text(encoding="utf-8"))
    if not isinstance(raw_existing, list):
        raise ValueError(f"{existing_path} must contain a JSON list of cases")
    return draft, [CaseRecord(**item) for item in raw_existing]


def print_report(result: DuplicateCheckResult) -> None:
    print(f"Compared against {result.candidates_checked} case(s), threshold {result.threshold:.2f}")
    for match in result.matches:
        r = match.result
        flag = "DUPLICATE?" if match.score >= result.threshold else ""
        image = f"{r.distinctive_feature_match:.2f}" if r.image_compared else "n/a"
        print(
            f"  #{match.case_id:<6} {match.child_name[:30]:<30} overall={r.overall_similarity:.2f} "
            f"text={r.physical_match:.2f} image={image} contact={r.contact_match:.2f} {flag}"
        )
    if result.is_likely_duplicate:
        print(f"Likely duplicate of case #{result.best_match.case_id}")
    else:
        print("No likely duplicate found")


def run_check(args) -> int:
    try:
        draft, existing = load_cases(args.case, args.existing)
    except (OSError, ValueError, ValidationError) as e:
        log_error("Could not load case files", error=str(e))
        print(f"Could not load case files: {e}", file=sys.stderr)
        return EXIT_ERROR

    detector = DuplicateCaseDetector(threshold=args.threshold, candidate_limit=args.limit)
    result = asyncio.run(detector.check(draft, existing))

    if args.as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_report(result)
    return EXIT_DUPLICATE if result.is_likely_duplicate else EXIT_OK


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Apply parsed arguments to environment variables
    if getattr(args, "provider", None):
        os.environ['LLM_PROVIDER'] = args.provider

    try:
        config = reload_config() if getattr(args, "provider", None) else get_config()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(config.log_level, config.log_format)
    config.log_configuration()

    issues = config.validate_configuration()
    if issues:
        log_error("Configuration validation failed", issues=issues)
        print("Configuration issues found:", file=sys.stderr)
        for issue in issues:
            print(f"  - {issue}", file=sys.stderr)
        return EXIT_ERROR

    log_info("Running duplicate check", command=args.command)
    return run_check(args)


if __name__ == "__main__":
    sys.exit(main())
