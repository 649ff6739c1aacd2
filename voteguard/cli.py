"""
VoteGuard command line.

Admin and operator boundary for ID verification cases, voting-session
reports and the template whitelist.

Usage:
    voteguard register V001 --name "A Voter" --document id.jpg
    voteguard verify V001 resubmitted.jpg
    voteguard cases --status pending
    voteguard approve <case_id> --admin admin1
    voteguard reject <case_id> --admin admin1 --reason "Photo mismatch"
    voteguard report-count V001 1 2 1 2 --candidate C1
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from .config import get_config
from .context import AppContext
from .exceptions import VoteGuardError, ValidationError
from .logger import get_logger, set_console_level
from .models import CaseStatus, ObservationResult

console = Console()
logger = get_logger("voteguard.cli")


def get_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )


def _read_file(path: str, field_name: str) -> bytes:
    file_path = Path(path)
    if not file_path.is_file():
        raise ValidationError(f"File not found: {path}", field_name=field_name, field_value=path)
    return file_path.read_bytes()


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str, ensure_ascii=False))


def _observation_line(result: ObservationResult) -> str:
    if not result.success:
        return f"[yellow]no data[/yellow] ({result.error})"
    if result.invalidated:
        suffix = " (already)" if result.already_invalidated else ""
        return f"[bold red]INVALIDATED{suffix}[/bold red] {result.reason}"
    parts = [result.message, f"warnings={result.warnings_count}"]
    if result.warning:
        parts.append(f"[yellow]{result.warning.severity}[/yellow]")
    parts.append(f"suspicion={result.suspicious_patterns:g}")
    if result.fraud_detected:
        parts.append("[red]fraud pattern[/red]")
    return " ".join(parts)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

def cmd_register(ctx: AppContext, args: argparse.Namespace) -> int:
    document = _read_file(args.document, "document") if args.document else None
    filename = Path(args.document).name if args.document else "id_document"
    voter = ctx.register_voter(args.voter_id, args.name or "", document, filename)
    console.print(f"[green]Registered[/green] {voter.voter_id}"
                  + (f" with document {voter.id_document.filename}" if voter.id_document else ""))
    return 0


def cmd_verify(ctx: AppContext, args: argparse.Namespace) -> int:
    data = _read_file(args.image, "image")
    with console.status(f"Verifying {args.voter_id}..."):
        outcome = ctx.orchestrator.verify_upload(args.voter_id, data, Path(args.image).name)

    if args.json:
        _print_json(outcome.to_dict())
    elif outcome.verified:
        console.print(f"[green]Verified[/green] (layer {outcome.layer}, {outcome.method}): {outcome.message}")
    else:
        console.print(f"[yellow]Pending review[/yellow] case [bold]{outcome.case_id}[/bold]: {outcome.message}")
    return 0


def cmd_approve(ctx: AppContext, args: argparse.Namespace) -> int:
    case = ctx.approve_case(args.case_id, args.admin, args.reason)
    console.print(f"[green]Approved[/green] case {case.case_id} (voter {case.voter_id})")
    return 0


def cmd_reject(ctx: AppContext, args: argparse.Namespace) -> int:
    case = ctx.reject_case(args.case_id, args.admin, args.reason)
    console.print(f"[red]Rejected[/red] case {case.case_id} (voter {case.voter_id}): {args.reason}")
    return 0


def cmd_cases(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.voter:
        cases = ctx.case_manager.cases_for_voter(args.voter)
    else:
        cases = ctx.cases.list_all()
    if args.status:
        cases = [c for c in cases if c.status is CaseStatus(args.status)]

    if args.json:
        _print_json([c.to_dict() for c in cases])
        return 0

    table = Table(title=f"Verification cases ({len(cases)})")
    table.add_column("Case ID", style="cyan")
    table.add_column("Voter")
    table.add_column("Status")
    table.add_column("OCR step1 / step2")
    table.add_column("Similarity", justify="right")
    table.add_column("Created")
    for case in cases:
        ocr = case.ocr_results
        table.add_row(
            case.case_id,
            case.voter_id,
            case.status.value,
            f"{ocr.step1.aadhaar or ocr.step1.voter_id or '-'} / {ocr.step2.aadhaar or ocr.step2.voter_id or '-'}",
            f"{case.image_comparison.similarity:.1f}%",
            case.created_at[:19],
        )
    console.print(table)
    return 0


def cmd_stats(ctx: AppContext, args: argparse.Namespace) -> int:
    stats = ctx.case_manager.get_statistics()
    if args.json:
        _print_json(stats)
        return 0
    table = Table(title="Case statistics")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)
    return 0


def _print_observations(results: List[ObservationResult], as_json: bool) -> None:
    if as_json:
        _print_json([r.to_dict() for r in results])
        return
    for i, result in enumerate(results, 1):
        console.print(f"{i:>3}. {_observation_line(result)}")


def cmd_report_count(ctx: AppContext, args: argparse.Namespace) -> int:
    ctx.liveness.start_session(args.voter_id, args.candidate, args.recording)
    results = []
    for i, count in enumerate(args.counts):
        # Synthetic timestamps so a burst of counts replays as a session
        timestamp = args.start + i * args.interval if args.start is not None else None
        result = ctx.liveness.report_count(args.voter_id, count, args.candidate, args.recording, timestamp)
        results.append(result)
        if result.invalidated:
            break
    _print_observations(results, args.json)
    if not args.json:
        _print_json(ctx.liveness.validate_session(args.voter_id))
    return 0


def cmd_report_frame(ctx: AppContext, args: argparse.Namespace) -> int:
    ctx.liveness.start_session(args.voter_id, args.candidate, args.recording)
    frames = [_read_file(path, "frame") for path in args.frames]
    results = []
    for frame in frames:
        result = ctx.liveness.report_frame(args.voter_id, frame, args.candidate, args.recording)
        results.append(result)
        if result.invalidated:
            break
    _print_observations(results, args.json)
    return 0


def cmd_voice_check(ctx: AppContext, args: argparse.Namespace) -> int:
    audio = _read_file(args.audio, "audio")
    if args.voter_id:
        result = ctx.liveness.report_audio(args.voter_id, audio, args.candidate)
        _print_observations([result], args.json)
        return 0

    detection = ctx.liveness.voice_analyzer.detect_multiple_voices(audio)
    _print_json(detection.__dict__)
    return 0


def cmd_whitelist_check(ctx: AppContext, args: argparse.Namespace) -> int:
    ctx.whitelist.load()
    decision = ctx.whitelist.is_image_allowed(
        _read_file(args.image, "image"),
        threshold=args.threshold,
        allowed_patterns=args.patterns,
        id_type=args.id_type,
    )
    if args.json:
        _print_json(decision.to_dict())
    else:
        label = "[green]ALLOWED[/green]" if decision.allowed else "[red]NOT ALLOWED[/red]"
        console.print(
            f"{label} best={decision.best_match} distance={decision.distance} "
            f"threshold={decision.threshold} reason={decision.reason or '-'}"
        )
    return 0 if decision.allowed else 1


def cmd_whitelist_add(ctx: AppContext, args: argparse.Namespace) -> int:
    with get_progress() as progress:
        task = progress.add_task("Adding templates", total=len(args.files))
        for path in args.files:
            ctx.whitelist.add_template(_read_file(path, "template"), Path(path).name)
            progress.update(task, advance=1)
    if args.id_type and args.patterns:
        ctx.whitelist.set_patterns(args.id_type, args.patterns)

    table = Table(title=f"Whitelist templates ({len(ctx.whitelist.list_templates())})")
    table.add_column("File", style="cyan")
    table.add_column("aHash")
    for entry in ctx.whitelist.list_templates():
        table.add_row(entry.filename, str(entry.hash))
    console.print(table)
    return 0


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voteguard", description="VoteGuard verification core")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Register a voter with an ID document")
    p.add_argument("voter_id")
    p.add_argument("--name")
    p.add_argument("--document", help="Registration ID document image")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("verify", help="Run 3-layer verification on a resubmitted ID")
    p.add_argument("voter_id")
    p.add_argument("image")
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("approve", help="Approve a pending verification case")
    p.add_argument("case_id")
    p.add_argument("--admin", required=True)
    p.add_argument("--reason")
    p.set_defaults(func=cmd_approve)

    p = sub.add_parser("reject", help="Reject a pending verification case")
    p.add_argument("case_id")
    p.add_argument("--admin", required=True)
    p.add_argument("--reason", required=True)
    p.set_defaults(func=cmd_reject)

    p = sub.add_parser("cases", help="List verification cases")
    p.add_argument("--status", choices=[s.value for s in CaseStatus])
    p.add_argument("--voter")
    p.set_defaults(func=cmd_cases)

    p = sub.add_parser("stats", help="Case statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("report-count", help="Replay person counts for a voting session")
    p.add_argument("voter_id")
    p.add_argument("counts", nargs="+", type=int)
    p.add_argument("--candidate")
    p.add_argument("--recording")
    p.add_argument("--start", type=float, help="Epoch seconds of the first count")
    p.add_argument("--interval", type=float, default=1.0, help="Seconds between counts")
    p.set_defaults(func=cmd_report_count)

    p = sub.add_parser("report-frame", help="Detect faces in frames and report them")
    p.add_argument("voter_id")
    p.add_argument("frames", nargs="+")
    p.add_argument("--candidate")
    p.add_argument("--recording")
    p.set_defaults(func=cmd_report_frame)

    p = sub.add_parser("voice-check", help="Check a WAV recording for multiple voices")
    p.add_argument("audio")
    p.add_argument("--voter-id", dest="voter_id", help="Report the result for this voter")
    p.add_argument("--candidate")
    p.set_defaults(func=cmd_voice_check)

    p = sub.add_parser("whitelist-check", help="Check an image against the template whitelist")
    p.add_argument("image")
    p.add_argument("--threshold", type=int)
    p.add_argument("--patterns", help="Comma separated filename patterns")
    p.add_argument("--id-type", dest="id_type")
    p.set_defaults(func=cmd_whitelist_check)

    p = sub.add_parser("whitelist-add", help="Add template images to the whitelist")
    p.add_argument("files", nargs="+")
    p.add_argument("--id-type", dest="id_type")
    p.add_argument("--patterns", help="Comma separated filename patterns for --id-type")
    p.set_defaults(func=cmd_whitelist_add)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    if args.debug:
        config.debug = True
        set_console_level(True)

    try:
        with AppContext.build(config) as ctx:
            return args.func(ctx, args)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 2
    except VoteGuardError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        logger.debug(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
