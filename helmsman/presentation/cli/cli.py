"""
CLI Module

Architectural Intent:
- Command-line interface for Helmsman
- Entry point for all operator interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Exit Codes:
- 0 on full success
- otherwise the number of failed checks (check-slo) or failed steps
  (failover, traffic-shift, rollback-traffic)
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import traceback
from typing import Optional

from helmsman.application.dtos.request_dtos import (
    CheckSLORequest,
    FailoverRequest,
    RollbackTrafficRequest,
    TrafficShiftRequest,
)
from helmsman.application.use_cases.failover import FailoverRun
from helmsman.composition_root import HelmsmanContainer, create_container
from helmsman.domain.entities.failover_record import FailoverStatus, OutcomeStatus
from helmsman.domain.entities.traffic_shift import TrafficShift
from helmsman.domain.exceptions import ConfigurationConflict, RunInProgressError
from helmsman.domain.value_objects.compliance_report import ComplianceReport
from helmsman.infrastructure.config import HelmsmanConfig, load_config
from helmsman.infrastructure.logging import configure_logging, resolve_level

_OUTCOME_MARKS = {
    OutcomeStatus.SUCCEEDED: "+",
    OutcomeStatus.DEGRADED: "!",
    OutcomeStatus.FAILED: "-",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Helmsman: SLO checks, traffic shifting and regional failover"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to config file (default: helmsman.json)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    slo_parser = subparsers.add_parser(
        "check-slo", help="Evaluate a deployment against its SLO thresholds"
    )
    slo_parser.add_argument("--target", "-t", required=True, help="Deployment name")
    slo_parser.add_argument("--namespace", "-n", default=None, help="Namespace")
    slo_parser.add_argument("--window", "-w", default="5m", help="Trailing window, e.g. 5m")
    slo_parser.add_argument("--cluster", default=None, help="Kube context to evaluate")
    slo_parser.add_argument(
        "--all-regions",
        action="store_true",
        help="Evaluate every configured region context in turn",
    )
    slo_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    failover_parser = subparsers.add_parser(
        "failover", help="Move traffic away from a failed region"
    )
    failover_parser.add_argument("--failed-region", "-f", required=True, help="Failed region")
    failover_parser.add_argument(
        "--target-region", "-t", default=None, help="Region that takes over"
    )
    failover_parser.add_argument("--reason", "-r", required=True, help="Why the failover runs")
    failover_parser.add_argument("--json", action="store_true", help="Print the record as JSON")

    shift_parser = subparsers.add_parser(
        "traffic-shift", help="Shift a share of a service's traffic to a new version"
    )
    shift_parser.add_argument("--service", "-s", required=True, help="Service name")
    shift_parser.add_argument("--new-version", required=True, help="Version receiving traffic")
    shift_parser.add_argument(
        "--old-version", default=None, help="Version giving up traffic (auto-detected)"
    )
    shift_parser.add_argument(
        "--weight", "-w", type=int, default=100, help="Percent for the new version"
    )
    shift_parser.add_argument("--namespace", "-n", default=None, help="Namespace")

    rollback_parser = subparsers.add_parser(
        "rollback-traffic", help="Return all traffic to the stable version"
    )
    rollback_parser.add_argument("--service", "-s", required=True, help="Service name")
    rollback_parser.add_argument(
        "--stable-version", required=True, help="Version to restore"
    )
    rollback_parser.add_argument(
        "--canary-version", default=None, help="Version to drain (auto-detected)"
    )
    rollback_parser.add_argument("--namespace", "-n", default=None, help="Namespace")

    return parser


def _secrets(config: HelmsmanConfig) -> tuple[str, ...]:
    """Credentials that must never appear in log output."""
    return (
        config.cloudflare.api_token,
        config.notifications.slack_webhook_url,
        config.notifications.pagerduty_api_key,
    )


def _cancel_on_interrupt(cancel: asyncio.Event) -> None:
    """Turn Ctrl+C into a cooperative cancel between steps."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass


def print_report(report: ComplianceReport) -> None:
    print(f"[*] SLO check for {report.target} over {report.window}")
    for v in report.verdicts:
        mark = "+" if v.passed else "-"
        note = "" if v.data_present else " (no data)"
        detail = f" {v.detail}" if v.detail else ""
        print(
            f"  [{mark}] {v.metric.value:<13} observed={v.observed:g} "
            f"threshold={v.threshold:g}{detail}{note}"
        )
    if report.passed:
        print("[+] All SLOs met.")
    else:
        print(f"[-] {report.failed_checks} SLO check(s) failed.")


def print_shift(shift: TrafficShift) -> None:
    split = shift.split
    print(f"[*] Traffic shift {shift.shift_id}: {split or shift.service}")
    if shift.deviation is not None:
        print(f"  Verification: {shift.deviation}")
    if shift.succeeded:
        print(f"[+] Traffic shift {shift.state.name.lower()}.")
    elif shift.error_message:
        print(f"[-] Traffic shift {shift.state.name.lower()}: {shift.error_message}")
    else:
        print(f"[-] Traffic shift {shift.state.name.lower()}.")


def print_failover(run: FailoverRun) -> None:
    record = run.record
    print(
        f"[*] Failover {record.record_id}: {record.failed_region} -> "
        f"{record.target_region} ({record.reason})"
    )
    outcomes = record.actions + ((run.audit,) if run.audit else ())
    for outcome in outcomes:
        mark = _OUTCOME_MARKS[outcome.status]
        print(f"  [{mark}] {outcome.action.value:<18} {outcome.detail}")
    if run.failed_steps:
        print(f"[-] Failover {record.status.value}: {run.failed_steps} step(s) failed.")
    else:
        print(f"[+] Failover {record.status.value}.")


async def run_check_slo(args, container: HelmsmanContainer) -> int:
    namespace = args.namespace or container.config.cluster.namespace
    request = CheckSLORequest(
        deployment=args.target,
        namespace=namespace,
        window=args.window,
        cluster=args.cluster,
    )
    if args.all_regions:
        contexts = container.config.cluster.region_contexts
        if not contexts:
            raise ConfigurationConflict("No region contexts configured for --all-regions")
        reports = await container.check_slo.execute_all_regions(request, contexts)
    else:
        reports = [await container.check_slo.execute(request)]

    for report in reports:
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print_report(report)
    return sum(r.failed_checks for r in reports)


async def run_failover(args, container: HelmsmanContainer) -> int:
    target = args.target_region or container.config.failover.default_target_region
    if not target:
        raise ConfigurationConflict("--target-region is required (no default configured)")
    request = FailoverRequest(
        failed_region=args.failed_region, target_region=target, reason=args.reason
    )
    cancel = asyncio.Event()
    _cancel_on_interrupt(cancel)

    print(f"[*] Executing failover: {request.failed_region} -> {request.target_region}")
    run = await container.failover.execute(request, cancel)
    if args.json:
        print(json.dumps(run.to_dict(), indent=2))
    else:
        print_failover(run)
    if run.failed_steps:
        return run.failed_steps
    return 1 if run.status == FailoverStatus.CANCELLED else 0


async def run_traffic_shift(args, container: HelmsmanContainer) -> int:
    request = TrafficShiftRequest(
        service=args.service,
        new_version=args.new_version,
        namespace=args.namespace or container.config.traffic.namespace,
        old_version=args.old_version,
        weight=args.weight,
    )
    cancel = asyncio.Event()
    _cancel_on_interrupt(cancel)

    print(f"[*] Shifting {request.weight}% of {request.service} to {request.new_version}...")
    shift = await container.traffic_shift.execute(request, cancel)
    print_shift(shift)
    return 0 if shift.succeeded else 1


async def run_rollback_traffic(args, container: HelmsmanContainer) -> int:
    request = RollbackTrafficRequest(
        service=args.service,
        stable_version=args.stable_version,
        namespace=args.namespace or container.config.traffic.namespace,
        canary_version=args.canary_version,
    )
    cancel = asyncio.Event()
    _cancel_on_interrupt(cancel)

    print(f"[*] Rolling back {request.service} to {request.stable_version}...")
    shift = await container.traffic_shift.rollback(request, cancel)
    print_shift(shift)
    return 0 if shift.succeeded else 1


_COMMANDS = {
    "check-slo": run_check_slo,
    "failover": run_failover,
    "traffic-shift": run_traffic_shift,
    "rollback-traffic": run_rollback_traffic,
}


async def async_main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    verbose = args.verbose or args.debug

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return

    try:
        config = load_config(args.config)
    except ConfigurationConflict as e:
        print(f"[-] Invalid configuration: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"[-] Cannot read configuration: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = resolve_level(config.log_level)
    configure_logging(level=level, json_format=args.json_logs, secrets=_secrets(config))

    try:
        container = create_container(config)
        await container.telemetry.initialize()
        code = await handler(args, container)
        await container.telemetry.export()
    except ConfigurationConflict as e:
        print(f"[-] Invalid request: {e}")
        sys.exit(1)
    except RunInProgressError as e:
        print(f"[-] {e}")
        sys.exit(1)
    except Exception as e:
        print(f"[-] {args.command} failed: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)

    sys.exit(code)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
