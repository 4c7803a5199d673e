"""
Command line interface.

**Usage**:
    giftflow run workflow.json
    giftflow run workflow.json --dry-run
    giftflow update-metadata workflow.json
    giftflow rename-files images --ext png --start-index 2

**What `run` does**:
  1. Load and validate the workflow config (credentials may come from .env)
  2. Create the ledger gateway and Pinata clients
  3. Run the gift workflow, resuming from ./.checkpoint if an earlier run
     was interrupted
  4. Print where the final CSV was written

**Exit codes**:
  - 0: Success
  - 1: Any error. Workflow errors print their message; anything else also
       prints a traceback.
  - 130: Interrupted (Ctrl+C). Checkpoints are kept; re-run to resume.
"""

import argparse
import sys
import traceback
from typing import List, Optional

from giftflow.config.settings import load_workflow_config
from giftflow.errors import WorkflowError
from giftflow.utils.files import DEFAULT_START_INDEX, rename_files
from giftflow.utils.logging import configure_logging
from giftflow.venues.ledger_client import LedgerGatewayClient
from giftflow.venues.pinata_client import PinataClient
from giftflow.workflow.decisions import InteractiveDecisionProvider
from giftflow.workflow.pipeline import WorkflowResult, run_workflow, update_metadata_workflow


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="giftflow",
        description="Mint NFT gifts for a CSV of beneficiaries, resumably.",
        epilog="""
Examples:
  # Check the config, the images and the initial fund without changing anything
  giftflow run workflow.json --dry-run

  # Run (or resume) the full workflow
  giftflow run workflow.json

  # Re-pin images and re-set instance metadata for an existing class
  giftflow update-metadata workflow.json

  # Rename images/*.png to 2.png, 3.png, ... to match the "<>.png" template
  giftflow rename-files images --ext png
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--json-logs", action="store_true", help="Write logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the gift workflow")
    run.add_argument("workflow_config", help="The workflow configuration file")
    run.add_argument("--dry-run", action="store_true", help="Only run the preflight checks")

    update = subparsers.add_parser(
        "update-metadata",
        help="Re-pin images and re-set the metadata of already minted instances",
    )
    update.add_argument("workflow_config", help="The workflow configuration file")
    update.add_argument("--dry-run", action="store_true", help="Only run the preflight checks")

    rename = subparsers.add_parser("rename-files", help="Renumber the files of a folder")
    rename.add_argument("input", help="The folder holding the files")
    rename.add_argument("--ext", required=True, help="Extension of the files to rename, e.g. png")
    rename.add_argument(
        "--start-index",
        type=int,
        default=DEFAULT_START_INDEX,
        help=f"Number of the first file (default: {DEFAULT_START_INDEX}, the CSV line of the first row)",
    )
    return parser


def _print_result(result: WorkflowResult) -> None:
    if result.resumed:
        print("Resumed from the existing checkpoint.")
    print(f"Rows processed: {result.row_count} (CSV lines {result.start_record_no + 2} to {result.end_record_no + 1})")
    if result.dry_run:
        print("dry-run check successfully finished")
    elif result.output_file is not None:
        print(f"The final datafile is written to:\n  {result.output_file}")


def _run(args: argparse.Namespace, workflow) -> None:
    print("> loading the workflow config ...")
    config = load_workflow_config(args.workflow_config)

    with LedgerGatewayClient(config.network) as ledger, PinataClient(config.pinata) as pinning:
        result = workflow(
            config,
            ledger,
            pinning,
            decisions=InteractiveDecisionProvider(),
            dry_run=args.dry_run,
        )
    _print_result(result)


def _rename(args: argparse.Namespace) -> None:
    renames = rename_files(args.input, args.ext, start_index=args.start_index)
    for source, target in renames:
        print(f"  {source.name} -> {target.name}")
    print(f"Renamed {len(renames)} file(s).")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point of the `giftflow` command.

    Returns:
        Process exit code (see the module docstring).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, json_logs=args.json_logs)

    try:
        if args.command == "run":
            _run(args, run_workflow)
        elif args.command == "update-metadata":
            _run(args, update_metadata_workflow)
        else:
            _rename(args)
        print("\ndone!")
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user. Re-run the same command to resume.", file=sys.stderr)
        return 130

    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
