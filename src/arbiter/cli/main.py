#!/usr/bin/env python3
"""
Arbiter CLI - inspect protocol parameters and simulate disputes.

Commands:
  arbiter params              Show protocol parameters
  arbiter simulate <file>     Run a dispute scenario from a JSON file
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

from ..collaborators import InMemoryToken, RecordingClient
from ..consensus.vrf import FixedSeedProvider
from ..core.clock import ManualClock
from ..core.commit_reveal import compute_commitment
from ..core.config import ProtocolParams, get_config
from ..core.exceptions import ArbiterException, ValidationException
from ..core.logging import configure_logging
from ..engine import ArbitrationEngine

logger = logging.getLogger(__name__)

CLIENT_ACCOUNT = "client"


def load_scenario(path: str | Path) -> dict[str, Any]:
    """Read a scenario file.

    Format::

        {
          "seed": "any string",              optional
          "choices": 2,                      optional, default 2
          "jurors": {"alice": 1000, ...},    stake per juror
          "votes": {"alice": 1, ...},        choice each juror reveals
          "no_reveal": ["carol"],            commit but never reveal
          "params": {"penalty_percent": 20}  optional overrides
        }
    """
    with open(path) as f:
        scenario = json.load(f)
    if not isinstance(scenario, dict):
        raise ValidationException("Scenario must be a JSON object")
    if not scenario.get("jurors"):
        raise ValidationException("Scenario needs at least one juror", field="jurors")
    return scenario


def build_params(overrides: dict[str, Any] | None) -> ProtocolParams:
    base = ProtocolParams.from_settings().to_dict()
    base.update(overrides or {})
    return ProtocolParams(
        penalty_percent=int(base["penalty_percent"]),
        commit_window=timedelta(seconds=int(base["commit_window_seconds"])),
        reveal_window=timedelta(seconds=int(base["reveal_window_seconds"])),
        jurors_per_dispute=int(base["jurors_per_dispute"]),
        arbitration_fee=int(base["arbitration_fee"]),
    )


def run_scenario(scenario: dict[str, Any]) -> dict[str, Any]:
    """Play a scenario end to end and report the outcome.

    Only jurors drawn onto the panel vote; votes for anyone else are listed
    under ``ignored_votes``.
    """
    params = build_params(scenario.get("params"))
    clock = ManualClock()
    token = InMemoryToken()
    client = RecordingClient()
    seed = str(scenario.get("seed", "arbiter-simulation")).encode()
    engine = ArbitrationEngine(
        token,
        params=params,
        seed_provider=FixedSeedProvider(seed),
        clock=clock,
    )

    jurors: dict[str, int] = scenario["jurors"]
    for juror, stake in jurors.items():
        token.mint(juror, int(stake))
        engine.deposit(juror, int(stake))

    token.mint(CLIENT_ACCOUNT, params.arbitration_fee)
    dispute_id = engine.create_dispute(
        CLIENT_ACCOUNT,
        int(scenario.get("choices", 2)),
        params.arbitration_fee,
        client,
    )
    panel = engine.selected_jurors(dispute_id)
    stakes_before = {juror: engine.stake_of(juror) for juror in jurors}

    votes: dict[str, int] = scenario.get("votes", {})
    no_reveal = set(scenario.get("no_reveal", []))
    salts = {juror: f"salt-{juror}" for juror in panel}

    for juror in panel:
        if juror in votes:
            engine.commit(dispute_id, juror, compute_commitment(dispute_id, int(votes[juror]), salts[juror]))

    clock.set(engine.get_dispute(dispute_id).commit_deadline)
    for juror in panel:
        if juror in votes and juror not in no_reveal:
            engine.reveal(dispute_id, juror, int(votes[juror]), salts[juror])

    clock.set(engine.get_dispute(dispute_id).reveal_deadline)
    result = engine.tally(dispute_id)
    engine.ledger.check_invariant()

    return {
        "dispute": engine.get_dispute(dispute_id).to_dict(),
        "result": result.to_dict(),
        "stakes_before": stakes_before,
        "stakes_after": {juror: engine.stake_of(juror) for juror in jurors},
        "total_staked": engine.total_staked,
        "client_ruling": client.rulings.get(dispute_id),
        "ignored_votes": sorted(j for j in votes if j not in panel),
    }


# ============================================================================
# Commands
# ============================================================================


def cmd_params(args: argparse.Namespace) -> int:
    """Show protocol parameters."""
    params = ProtocolParams.from_settings().to_dict()
    if args.json:
        print(json.dumps(params, indent=2))
        return 0

    print("Protocol parameters")
    print("─" * 30)
    for key, value in params.items():
        print(f"  {key:<24}{value}")
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run a dispute scenario."""
    try:
        scenario = load_scenario(args.file)
        report = run_scenario(scenario)
    except ArbiterException as e:
        print(f"❌ Simulation failed: {e.message}", file=sys.stderr)
        if args.json:
            print(json.dumps(e.to_dict(), indent=2))
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Could not read scenario: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report, indent=2))
        return 0

    result = report["result"]
    print(f"⚖️  Dispute {result['dispute_id']}: ruling {result['ruling']}")
    print(f"  Panel:        {', '.join(report['dispute']['jurors'])}")
    print(f"  Vote counts:  {result['vote_counts']}")
    print(f"  Penalty pool: {result['penalty_pool']}")
    print(f"  Per winner:   {result['reward_per_winner']}")
    print(f"  Left over:    {result['undistributed']}")
    print("  Stakes:")
    for juror, after in report["stakes_after"].items():
        before = report["stakes_before"][juror]
        print(f"    {juror:<16}{before:>10} -> {after:<10} ({after - before:+d})")
    return 0


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="arbiter",
        description="Stake-weighted commit-reveal arbitration engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  arbiter params                    Show protocol parameters
  arbiter params --json             Same, as JSON
  arbiter simulate scenario.json    Simulate a dispute
        """,
    )
    parser.add_argument("--log-level", default=None, help="Override ARBITER_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    params_parser = subparsers.add_parser("params", help="Show protocol parameters")
    params_parser.add_argument("--json", action="store_true", help="Output JSON")
    params_parser.set_defaults(func=cmd_params)

    simulate_parser = subparsers.add_parser("simulate", help="Simulate a dispute from a JSON scenario")
    simulate_parser.add_argument("file", help="Scenario file")
    simulate_parser.add_argument("--json", action="store_true", help="Output JSON")
    simulate_parser.set_defaults(func=cmd_simulate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = app()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level or get_config().log_level, json_format=False)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
