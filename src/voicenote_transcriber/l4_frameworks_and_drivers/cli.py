"""CLI entry point for voicenote-transcriber."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from voicenote_transcriber import __version__

_STATUS_CHOICES = ('pending', 'success', 'failed')


def _config_option(fn):
    return click.option(
        '-c',
        '--config',
        'config_path',
        default=None,
        type=click.Path(exists=True, dir_okay=False),
        help='Path to YAML config file.',
    )(fn)


def _build_container(config_path: str | None, ignore_constraints: bool = False, verbose: bool = False):
    from pydantic import ValidationError  # noqa: PLC0415 -- deferred: not needed for --help

    from voicenote_transcriber.l4_frameworks_and_drivers.config import (  # noqa: PLC0415 -- deferred: not needed for --help
        build_app_config,
    )
    from voicenote_transcriber.l4_frameworks_and_drivers.container import (  # noqa: PLC0415 -- deferred: numpy/whisper stack not loaded on --help
        DependencyContainer,
    )
    from voicenote_transcriber.l4_frameworks_and_drivers.logging_setup import (  # noqa: PLC0415 -- deferred: not needed for --help
        setup_file_logging,
    )

    try:
        raw = DependencyContainer.config_loader().load_raw(config_path)
        config = build_app_config(raw)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    container = DependencyContainer(config, ignore_constraints=ignore_constraints)
    setup_file_logging(container.data_dir, verbose=verbose)
    return container


@click.group()
@click.version_option(version=__version__)
@click.option('-v', '--verbose', is_flag=True, default=False, help='Mirror log output to stderr.')
@click.pass_context
def cli(ctx, verbose):
    """voicenote-transcriber -- on-device transcription of recorded voice notes."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose


@cli.command()
@click.argument('audio', type=click.Path(dir_okay=False))
@click.option('--entity-id', required=True, help='Identifier of the note the clip belongs to.')
@click.option('--entity-name', default=None, help='Display name stored with the statistics record.')
@click.option('--consent/--no-consent', default=True, help='Whether transcription (and model download) is allowed.')
@click.option('--force', is_flag=True, default=False, help='Run now even when not charging or battery is low.')
@_config_option
@click.pass_context
def transcribe(ctx, audio, entity_id, entity_name, consent, force, config_path):
    """Schedule AUDIO for transcription and run it if the device allows."""
    from voicenote_transcriber.l1_entities.job import TranscriptionRequest  # noqa: PLC0415 -- deferred: not needed for --help

    container = _build_container(config_path, ignore_constraints=force, verbose=ctx.obj['verbose'])
    container.entities.register(entity_id, entity_name)
    audio_path = str(Path(audio).resolve())

    container.scheduler.schedule(entity_id, audio_path, consent_granted=consent)
    if not consent:
        click.echo('Transcription disabled for this note (no consent); nothing scheduled.')
        return

    key = TranscriptionRequest(entity_id=entity_id, audio_path=audio_path, consent_granted=True).key
    queue = container.queue
    try:
        queue.run_pending(container.device_probe.snapshot())
        queue.wait()
        waiting = key in queue.pending_keys()
        outcome = queue.result(key)
    finally:
        queue.shutdown(wait=True)

    if outcome is None:
        latest = container.stats.find_latest_for(entity_id, audio_path)
        if waiting:
            click.echo('Queued: waiting for the device to be charging with battery not low (use --force).')
        elif latest is not None:
            click.echo(f'Already {latest.status.value} (stats #{latest.id}); not scheduled again.')
        return

    if outcome.cancelled:
        click.echo('Transcription cancelled; record left pending.')
        return

    stats = outcome.stats
    if not outcome.succeeded:
        detail = stats.error_message if stats is not None else outcome.error.value
        click.echo(f'Transcription failed: {detail}', err=True)
        sys.exit(1)

    click.echo(stats.transcription_text or '')
    click.echo(
        f'[{stats.engine_id}] language={stats.detected_language} '
        f'duration={stats.duration_ms}ms speed_ratio={_fmt(stats.processing_speed_ratio)}',
        err=True,
    )


@cli.command()
@click.option('--status', type=click.Choice(_STATUS_CHOICES), default=None, help='List records with this status.')
@click.option('--entity-id', default=None, help='List records for this note.')
@click.option('--clear', is_flag=True, default=False, help='Delete records (all, or for --entity-id).')
@click.option('--yes', is_flag=True, default=False, help='Do not ask for confirmation with --clear.')
@_config_option
@click.pass_context
def stats(ctx, status, entity_id, clear, yes, config_path):
    """Show transcription statistics."""
    from voicenote_transcriber.l1_entities.stats import StatsStatus  # noqa: PLC0415 -- deferred: not needed for --help

    container = _build_container(config_path, verbose=ctx.obj['verbose'])
    repo = container.stats

    if clear:
        scope = f'note {entity_id}' if entity_id else 'all notes'
        if not yes and not click.confirm(f'Delete statistics for {scope}?'):
            return
        deleted = repo.delete_for_entity(entity_id) if entity_id else repo.delete_all()
        click.echo(f'Deleted {deleted} record(s).')
        return

    summary = repo.summary()
    click.echo(
        f'Total: {summary.total}  success: {summary.success}  failed: {summary.failed}  pending: {summary.pending}'
    )
    click.echo(f'Average duration: {_fmt(summary.average_duration_ms)} ms')
    click.echo(f'Average transcript length: {_fmt(summary.average_transcription_length)} chars')
    click.echo(f'Average speed ratio: {_fmt(summary.average_speed_ratio)}')
    for label, record in (('Longest', summary.longest), ('Slowest', summary.slowest), ('Fastest', summary.fastest)):
        if record is not None:
            click.echo(f'{label}: #{record.id} {record.audio_file_path} ({record.duration_ms} ms)')

    if status is None and entity_id is None:
        return
    records = repo.list(status=StatsStatus(status) if status else None, entity_id=entity_id)
    for record in records:
        line = f'#{record.id} {record.status.value:<7} {record.entity_id} {record.audio_file_path}'
        if record.error_message:
            line += f'  [{record.error_message}]'
        click.echo(line)


@cli.group()
def model():
    """Manage the on-device speech model."""


@model.command('status')
@_config_option
@click.pass_context
def model_status(ctx, config_path):
    """Show whether the model is present and whether it can be downloaded now."""
    container = _build_container(config_path, verbose=ctx.obj['verbose'])
    models = container.models
    device = container.device_probe.snapshot()
    click.echo(f'Model: {models.model_file()}')
    if models.are_models_present():
        click.echo(f'Present ({models.model_size_mb()} MB)')
    else:
        click.echo(f'Absent; download readiness: {models.can_download(device).value}')
    engines = container.selector.available_engine_ids(device, container.config.engine)
    click.echo(f'Available engines: {", ".join(engines) or "none"} (fallback: noop)')


@model.command('download')
@_config_option
@click.pass_context
def model_download(ctx, config_path):
    """Download the model if the network and storage allow it."""
    container = _build_container(config_path, verbose=ctx.obj['verbose'])
    models = container.models
    if models.are_models_present():
        click.echo(f'Model already present: {models.model_file()}')
        return

    last = -1

    def _on_progress(percent: int) -> None:
        nonlocal last
        if percent // 10 != last // 10:
            click.echo(f'  {percent}%', err=True)
        last = percent

    result = models.download(container.device_probe.snapshot(), _on_progress)
    if not result.ok:
        click.echo(f'Download failed after {result.attempts} attempt(s): {result.error}', err=True)
        sys.exit(1)
    click.echo(f'Model downloaded: {models.model_file()}')


@model.command('delete')
@_config_option
@click.pass_context
def model_delete(ctx, config_path):
    """Delete the downloaded model."""
    container = _build_container(config_path, verbose=ctx.obj['verbose'])
    if not container.models.delete_models():
        click.echo('Error: could not delete model.', err=True)
        sys.exit(1)
    click.echo('Model deleted.')


def _fmt(value: float | None) -> str:
    return '-' if value is None else f'{value:.2f}'
