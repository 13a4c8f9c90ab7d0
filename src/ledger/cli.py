#!/usr/bin/env python3
"""
CLI for replaying ledger operation scripts.

Usage:
    python -m src.ledger.cli data/flood_claim.json
    python -m src.ledger.cli data/flood_claim.json --strict --json

Script format:
    {
      "owner": "0xowner",
      "operations": [
        {"op": "assign_role", "caller": "0xowner", "target": "alice", "role": "user"},
        {"op": "issue_policy", "caller": "bob", "user": "alice", "details": "flood cover", "coverage_amount": 1000},
        {"op": "submit_claim", "caller": "alice", "policy_id": 1, "description": "water damage", "amount": 500},
        {"op": "update_claim_status", "caller": "bob", "claim_id": 1, "status": "approved"}
      ]
    }
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .errors import LedgerError
from .events import EventBus
from .store import InsuranceLedger

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# =============================================================================
# Step Dispatch
# =============================================================================


def _assign_role(ledger: InsuranceLedger, step: Dict[str, Any]) -> Any:
    return ledger.assign_role(step["caller"], step["target"], step["role"]).value


def _issue_policy(ledger: InsuranceLedger, step: Dict[str, Any]) -> Any:
    return ledger.issue_policy(
        step["caller"], step["user"], step.get("details", ""), step["coverage_amount"]
    )


def _deactivate_policy(ledger: InsuranceLedger, step: Dict[str, Any]) -> Any:
    ledger.deactivate_policy(step["caller"], step["policy_id"])
    return None


def _submit_claim(ledger: InsuranceLedger, step: Dict[str, Any]) -> Any:
    return ledger.submit_claim(
        step["caller"], step["policy_id"], step.get("description", ""), step["amount"]
    )


def _update_claim_status(ledger: InsuranceLedger, step: Dict[str, Any]) -> Any:
    return ledger.update_claim_status(step["caller"], step["claim_id"], step["status"]).value


OPERATIONS: Dict[str, Callable[[InsuranceLedger, Dict[str, Any]], Any]] = {
    "assign_role": _assign_role,
    "issue_policy": _issue_policy,
    "deactivate_policy": _deactivate_policy,
    "submit_claim": _submit_claim,
    "update_claim_status": _update_claim_status,
}


def run_step(ledger: InsuranceLedger, index: int, step: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply one scripted operation.

    Returns:
        Outcome dict with step number, op, caller, ok flag, result and error code
    """
    if not isinstance(step, dict):
        logger.debug(f"Step {index} is not an object: {step!r}")
        return {"step": index, "op": "", "caller": "", "ok": False, "result": None, "error": "InvalidStep"}

    op = step.get("op", "")
    outcome = {
        "step": index,
        "op": op,
        "caller": step.get("caller", ""),
        "ok": False,
        "result": None,
        "error": None,
    }

    handler = OPERATIONS.get(op) if isinstance(op, str) else None
    if handler is None:
        outcome["error"] = "UnknownOperation"
        return outcome

    try:
        outcome["result"] = handler(ledger, step)
        outcome["ok"] = True
    except LedgerError as e:
        outcome["error"] = e.code
    except KeyError as e:
        outcome["error"] = f"MissingField:{e.args[0]}"
    except ValueError as e:
        # pydantic ValidationError (negative amounts, wrong types)
        logger.debug(f"Step {index} rejected by validation: {e}")
        outcome["error"] = "ValidationError"

    return outcome


def replay(
    script: Dict[str, Any],
    strict: bool = False,
    stop_on_error: bool = False,
) -> tuple[InsuranceLedger, List[Dict[str, Any]]]:
    """Replay a script against a fresh ledger, one operation at a time."""
    ledger = InsuranceLedger(
        owner=script["owner"],
        events=EventBus(),
        strict_lookup=strict,
    )

    outcomes = []
    for index, step in enumerate(script.get("operations", []), start=1):
        outcome = run_step(ledger, index, step)
        outcomes.append(outcome)
        if stop_on_error and not outcome["ok"]:
            break

    return ledger, outcomes


# =============================================================================
# Rendering
# =============================================================================


def make_steps_table(outcomes: List[Dict[str, Any]]) -> Table:
    """Create table with the outcome of each scripted step."""
    table = Table(title="Operations", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Operation", style="bold")
    table.add_column("Caller")
    table.add_column("Outcome")
    table.add_column("Result")

    for outcome in outcomes:
        status = "[green]ok[/green]" if outcome["ok"] else f"[red]{outcome['error']}[/red]"
        result = "" if outcome["result"] is None else str(outcome["result"])
        table.add_row(str(outcome["step"]), outcome["op"], outcome["caller"], status, result)

    return table


def make_policies_table(ledger: InsuranceLedger) -> Table:
    table = Table(title="Policies", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("Holder")
    table.add_column("Details")
    table.add_column("Coverage", justify="right")
    table.add_column("Active")

    for policy in ledger.policies.all_policies():
        table.add_row(
            str(policy.id),
            policy.holder,
            policy.details,
            f"{policy.coverage_amount:,}",
            "yes" if policy.is_active else "no",
        )
    return table


def make_claims_table(ledger: InsuranceLedger) -> Table:
    table = Table(title="Claims", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("Policy", justify="right")
    table.add_column("Claimant")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Status", style="bold")

    for claim in ledger.claims.all_claims():
        table.add_row(
            str(claim.id),
            str(claim.policy_id),
            claim.claimant,
            claim.description,
            f"{claim.amount:,}",
            claim.status.value,
        )
    return table


def make_events_table(ledger: InsuranceLedger) -> Table:
    table = Table(title="Notifications", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Seq", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Payload")

    for event in ledger.events.history():
        payload = event.model_dump(mode="json", exclude={"name", "sequence", "emitted_at"})
        table.add_row(str(event.sequence), event.name, json.dumps(payload))
    return table


# =============================================================================
# Entry Point
# =============================================================================


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Replay an insurance ledger operation script',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay and show tables
  python -m src.ledger.cli data/flood_claim.json

  # Fail on missing policy/claim ids instead of no-op'ing
  python -m src.ledger.cli data/flood_claim.json --strict

  # Dump the final ledger as JSON
  python -m src.ledger.cli data/flood_claim.json --json
        """
    )
    parser.add_argument('script', type=str, help='Path to JSON operation script')
    parser.add_argument(
        '--strict',
        action='store_true',
        help='Reject operations on missing policy/claim ids'
    )
    parser.add_argument(
        '--stop-on-error',
        action='store_true',
        help='Stop at the first rejected operation and exit with status 1'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the final ledger snapshot as JSON to stdout'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    console = Console(stderr=True)

    try:
        with open(Path(args.script), 'r', encoding='utf-8') as f:
            script = json.load(f)
        if not isinstance(script, dict) or not script.get("owner"):
            raise ValueError("script has no 'owner'")
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read script {args.script}: {e}")
        console.print(f"[red]Cannot read script {args.script}: {e}[/red]")
        return 1

    ledger, outcomes = replay(script, strict=args.strict, stop_on_error=args.stop_on_error)

    console.print(make_steps_table(outcomes))
    console.print(make_policies_table(ledger))
    console.print(make_claims_table(ledger))
    console.print(make_events_table(ledger))

    failed = [o for o in outcomes if not o["ok"]]
    console.print(f"{len(outcomes) - len(failed)} ok, {len(failed)} rejected")

    if args.json:
        print(json.dumps(ledger.snapshot(), indent=2))

    if failed and args.stop_on_error:
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
