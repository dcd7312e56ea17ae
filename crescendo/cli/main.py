"""Main entry point for the Crescendo CLI."""

import json
import random
import time
from typing import Optional

import click

from ..logger import get_logger
from ..logging_config import setup_logging
from ..audio.audio_input import list_input_devices
from ..core.config import ConfigManager
from ..core.errors import AcquisitionError, ScheduleError
from ..core.factory import ComponentFactory
from ..judgment.schedule import DIFFICULTIES, load_schedule, parse_schedule, random_bars
from ..note_types import NoteOutcome
from ..note_utils import frequency_to_note
from ..stats import SessionReport

logger = get_logger(__name__)

_OUTCOME_COLORS = {
    NoteOutcome.CORRECT: "green",
    NoteOutcome.WRONG: "red",
    NoteOutcome.MISSED: "yellow",
}


def _microphone_error(e: Exception) -> None:
    click.echo(f"Cannot access microphone: {e}", err=True)
    raise SystemExit(1)


def _schedule_error(e: Exception) -> None:
    click.echo(f"Invalid schedule: {e}", err=True)
    raise SystemExit(2)


def _print_outcome(record) -> None:
    label = record.outcome.value.upper()
    line = f"[{record.decided_at:6.2f}s] {record.target_name:<4} {label}"
    if record.outcome is NoteOutcome.CORRECT:
        line += f" +{record.points} ({record.cents_deviation:+.0f} cents, {record.response_time * 1000:.0f} ms)"
    elif record.outcome is NoteOutcome.WRONG:
        line += f" heard {record.detected}"
    click.secho(line, fg=_OUTCOME_COLORS[record.outcome])


def _print_report(report: SessionReport) -> None:
    click.echo("")
    click.echo("=== Session Summary ===")
    click.echo(f"Notes judged: {report.total_notes}")
    click.echo(
        f"Correct: {report.correct_notes}  Wrong: {report.wrong_notes}  "
        f"Missed: {report.missed_notes}  Abandoned: {report.abandoned_notes}"
    )
    click.echo(f"Accuracy: {report.accuracy:.1f}%")
    if report.average_cents_deviation is not None:
        click.echo(f"Average deviation: {report.average_cents_deviation:.1f} cents")
    if report.average_response_time is not None:
        click.echo(f"Average response: {report.average_response_time * 1000:.0f} ms")
    click.echo(f"Best streak: {report.max_streak}")
    click.echo(f"Points: {report.total_points}")


def _write_report(report: SessionReport, path: Optional[str]) -> None:
    if not path:
        return
    with open(path, "w") as f:
        json.dump(report.to_dict(), f, indent=2)
    click.echo(f"Report written to {path}")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Configuration directory (default: ~/.config/crescendo)",
)
@click.pass_context
def cli(ctx, debug, config_dir):
    """Crescendo - real-time pitch detection and note judgment."""
    setup_logging("DEBUG" if debug else None)
    ctx.ensure_object(dict)
    ctx.obj["factory"] = ComponentFactory(ConfigManager(config_dir))


@cli.command()
def devices():
    """List audio input devices."""
    try:
        found = list_input_devices()
    except AcquisitionError as e:
        _microphone_error(e)
    if not found:
        click.echo("No input devices found")
        return
    for device in found:
        click.echo(
            f"{device['id']}: {device['name']} "
            f"(inputs: {device['max_input_channels']}, rate: {device['default_samplerate']}Hz)"
        )


@cli.command()
@click.option("--duration", "-t", default=10.0, help="How long to listen in seconds")
@click.option("--device", "-d", type=int, default=None, help="Audio input device ID")
@click.pass_context
def listen(ctx, duration, device):
    """Show the note being played, live."""
    factory: ComponentFactory = ctx.obj["factory"]
    period = factory.config_manager.audio_config().detection_period
    overrides = {"device_id": device} if device is not None else {}
    source = factory.create_signal_source(**overrides)
    estimator = factory.create_estimator()

    try:
        source.initialize()
    except AcquisitionError as e:
        _microphone_error(e)

    click.echo(f"Listening for {duration:g}s at {source.sample_rate}Hz, Ctrl+C to stop")
    last = None
    start = time.monotonic()
    try:
        while time.monotonic() - start < duration:
            estimate = estimator.estimate(source.get_frame(), time.monotonic() - start)
            pitch = frequency_to_note(estimate.frequency)
            current = str(pitch) if not estimate.is_abstention and pitch.detected else None
            if current != last:
                if current:
                    click.echo(
                        f"You are playing {current} ({pitch.cents:+d} cents, "
                        f"{estimate.frequency:.1f}Hz, {estimate.method.value}, "
                        f"conf {estimate.confidence:.2f})"
                    )
                else:
                    click.echo("-")
                last = current
            time.sleep(period)
    except KeyboardInterrupt:
        pass
    finally:
        source.close()


@cli.command()
@click.argument("schedule", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--difficulty",
    type=click.Choice(sorted(DIFFICULTIES)),
    default="easy",
    help="Note range for a random schedule",
)
@click.option("--count", "-n", default=4, help="Bars of random notes")
@click.option("--tempo", type=float, default=None, help="Beats per minute (default: the schedule's, or 60)")
@click.option("--device", "-d", type=int, default=None, help="Audio input device ID")
@click.option("--seed", type=int, default=None, help="Seed for the random schedule")
@click.option("--report", type=click.Path(dir_okay=False), default=None, help="Write the session report as JSON")
@click.pass_context
def practice(ctx, schedule, difficulty, count, tempo, device, seed, report):
    """Play along with a schedule, judged live from the microphone."""
    factory: ComponentFactory = ctx.obj["factory"]
    tolerance = factory.config_manager.judgment_config().judgment_tolerance
    try:
        if schedule:
            notes = load_schedule(schedule, tempo=tempo, tolerance=tolerance)
        else:
            bars = random_bars(count, difficulty, random.Random(seed))
            notes = parse_schedule(bars, tempo=tempo, tolerance=tolerance)
    except ScheduleError as e:
        _schedule_error(e)

    overrides = {"device_id": device} if device is not None else {}
    session = factory.create_session(
        notes,
        source=factory.create_signal_source(**overrides),
        difficulty=difficulty if not schedule else "custom",
    )
    session.events.on_note_opened(
        lambda note: click.echo(f"[{note.window_start:6.2f}s] Play {note.name}")
    )
    session.events.on_note_judged(_print_outcome)

    try:
        session.start()
    except AcquisitionError as e:
        _microphone_error(e)

    click.echo(f"Practice started: {len(notes)} notes, Ctrl+C to stop")
    try:
        while not session.finished:
            time.sleep(0.1)
    except KeyboardInterrupt:
        click.echo("Stopping...")
    result = session.stop()
    _print_report(result)
    _write_report(result, report)


@cli.command()
@click.argument("wav", type=click.Path(exists=True, dir_okay=False))
@click.argument("schedule", type=click.Path(exists=True, dir_okay=False))
@click.option("--tempo", type=float, default=None, help="Override the schedule tempo")
@click.option("--report", type=click.Path(dir_okay=False), default=None, help="Write the session report as JSON")
@click.pass_context
def judge(ctx, wav, schedule, tempo, report):
    """Judge a recorded performance against a schedule."""
    factory: ComponentFactory = ctx.obj["factory"]
    tolerance = factory.config_manager.judgment_config().judgment_tolerance
    try:
        notes = load_schedule(schedule, tempo=tempo, tolerance=tolerance)
    except ScheduleError as e:
        _schedule_error(e)

    source = factory.create_signal_source("file", file_path=wav)
    session = factory.create_session(notes, source=source)
    session.events.on_note_judged(_print_outcome)

    try:
        session.start(background=False)
    except AcquisitionError as e:
        click.echo(f"Cannot read recording: {e}", err=True)
        raise SystemExit(1)

    session.replay(max(source.duration, max(n.window_end for n in notes)))
    result = session.stop()
    _print_report(result)
    _write_report(result, report)


if __name__ == "__main__":
    cli()
