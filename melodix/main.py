"""
Main CLI interface for Melodix

Command-line front end for the Melodix core services: background song
enhancement, the persisted enhancement task list, waveform and spectrum
rendering, extensions and configuration.

Command groups:
- enhance: enrich audio files and wait for the results
- tasks: inspect and control the persisted enhancement task list
- waveform / spectrum: render visual feedback for an audio file
- extensions: list and toggle installed extensions
- config: show and validate configuration
"""

import asyncio
import functools
import sys
from dataclasses import dataclass
from typing import Iterable, Optional, Set

import click

from . import __version__
from .audio.decoder import decode_audio
from .audio.signal import SignalSourceAdapter
from .audio.waveform import render_bars
from .config.settings import get_settings, reload_settings
from .core.storage import JsonFileStore, KeyValueStore
from .enhancement.models import EnhancementTask, TaskStatus
from .enhancement.pipeline import EnrichmentPipeline
from .enhancement.providers import EnrichmentProvider, OnlineEnrichmentProvider
from .enhancement.queue import EnhancementTaskQueue
from .enhancement.repository import TaskRepository
from .extensions.registry import ExtensionRegistry
from .library.loader import load_song
from .library.models import Song
from .utils.helpers import format_duration, format_timestamp, truncate_string
from .utils.logger import configure_from_settings, create_operation_logger, get_logger, get_current_log_file


logger = get_logger(__name__)

LIBRARY_KEY = "melodix-library-v1"
SPECTRUM_LEVELS = " ▁▂▃▄▅▆▇█"
STATUS_COLORS = {
    TaskStatus.PENDING: 'white',
    TaskStatus.PROCESSING: 'cyan',
    TaskStatus.COMPLETED: 'green',
    TaskStatus.FAILED: 'red',
    TaskStatus.PAUSED: 'yellow',
}


@dataclass
class Services:
    """Explicitly constructed core services shared by the commands"""
    store: KeyValueStore
    provider: EnrichmentProvider
    queue: EnhancementTaskQueue
    extensions: ExtensionRegistry


def remember_song(store: KeyValueStore):
    """Result callback storing enhanced songs in the library cache"""
    def on_result(song: Song) -> None:
        library = store.get(LIBRARY_KEY, {}) or {}
        library[song.id] = song.to_dict()
        store.put(LIBRARY_KEY, library)
    return on_result


def build_services(settings=None, provider: Optional[EnrichmentProvider] = None) -> Services:
    """
    Create the core services once for a command

    Args:
        settings: Settings instance (defaults to the global settings)
        provider: Enrichment provider (defaults to the online provider)
    """
    settings = settings or get_settings()
    store = JsonFileStore(settings.get_tasks_path())
    provider = provider or OnlineEnrichmentProvider.from_settings(settings)

    pipeline = EnrichmentPipeline(
        provider,
        timeout=settings.enhancement.lookup_timeout,
        min_lyrics_length=settings.enhancement.min_lyrics_length
    )

    def resolve_song(song_id: str) -> Optional[Song]:
        data = (store.get(LIBRARY_KEY, {}) or {}).get(song_id)
        return Song.from_dict(data) if data else None

    queue = EnhancementTaskQueue(
        TaskRepository(store),
        pipeline,
        max_concurrent=settings.enhancement.concurrency,
        max_retries=settings.enhancement.max_retries,
        song_resolver=resolve_song,
        on_result=remember_song(store)
    )
    return Services(store=store, provider=provider, queue=queue, extensions=ExtensionRegistry(store))


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Args:
        func: The CLI command function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


async def run_until_idle(services: Services, tracked: Set[str], show_progress: bool = True) -> None:
    """
    Process the queue until idle, showing aggregate progress of tracked tasks

    Args:
        services: Core services
        tracked: Ids of the tasks whose progress is displayed
        show_progress: Render a progress bar
    """
    operation = create_operation_logger(__name__, "Enhancing", show_progress=show_progress)
    operation.start(f"Enhancing {len(tracked)} songs...")

    def render(tasks) -> None:
        mine = [task for task in tasks if task.id in tracked]
        if not mine:
            return
        finished = sum(1 for task in mine if task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED))
        operation.progress(
            f"{finished}/{len(mine)} done",
            current=sum(task.progress if task.status != TaskStatus.FAILED else 100 for task in mine),
            total=100 * len(mine)
        )

    unsubscribe = services.queue.subscribe(render)
    try:
        await services.queue.wait_until_idle()
    except BaseException as e:
        operation.error("interrupted", e if isinstance(e, Exception) else None)
        await services.queue.close()
        raise
    finally:
        unsubscribe()
        await services.provider.close()
    operation.complete("Enhancement finished")


def print_summary(tasks: Iterable[EnhancementTask]) -> None:
    tasks = list(tasks)
    completed = [task for task in tasks if task.status == TaskStatus.COMPLETED]
    failed = [task for task in tasks if task.status == TaskStatus.FAILED]

    click.echo("\nResults:")
    click.echo(f"   Completed: {len(completed)}")
    click.echo(f"   Failed: {len(failed)}")
    for task in completed:
        lyrics = "lyrics" if task.result and task.result.has_lyrics else "no lyrics"
        click.echo(f"   {click.style('✓', fg='green')} {task.artist} - {task.song_title} ({lyrics})")
    for task in failed:
        click.echo(f"   {click.style('✗', fg='red')} {task.artist} - {task.song_title}: {task.error}")


def print_task(task: EnhancementTask) -> None:
    status = click.style(f"{task.status.value:<10}", fg=STATUS_COLORS[task.status])
    title = truncate_string(f"{task.artist} - {task.song_title}", 50)
    created = format_timestamp(task.created_at)
    line = f"{task.id[:8]}  {status} {task.progress:>3}%  retries {task.retry_count}  {created}  {title}"
    click.echo(line)
    if task.error:
        click.echo(f"          {click.style(task.error, fg='red')}")


# Main CLI group - root command that all subcommands attach to
@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    Melodix - background song enhancement and audio visualization

    Enriches audio files with corrected tags and lyrics through a persistent
    task queue, and renders waveforms and spectra in the terminal.
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"Melodix v{__version__}")
        return

    if config:
        reload_settings(config)

    settings = get_settings()
    if verbose:
        settings.logging.level = "DEBUG"
        ctx.obj['verbose'] = True
    configure_from_settings()

    if config:
        logger.console_info(f"Loaded config: {config}")

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--no-progress', is_flag=True, help='Do not show a progress bar')
@handle_error
def enhance(files, no_progress):
    """Enhance tags and lyrics of audio FILES"""
    services = build_services()

    tracked = set()
    for file_path in files:
        song = load_song(file_path)
        task = services.queue.enqueue(song)
        if task is not None:
            tracked.add(task.id)

    if not tracked:
        click.echo("Nothing to enhance")
        return

    asyncio.run(run_until_idle(services, tracked, show_progress=not no_progress))
    print_summary(task for task in services.queue.snapshot() if task.id in tracked)


@cli.group()
def tasks():
    """Inspect and control enhancement tasks"""
    pass


def _resolve_task_id(queue: EnhancementTaskQueue, prefix: str) -> str:
    matches = [task.id for task in queue.snapshot() if task.id.startswith(prefix)]
    if not matches:
        raise click.BadParameter(f"No task matches '{prefix}'")
    if len(matches) > 1:
        raise click.BadParameter(f"'{prefix}' matches {len(matches)} tasks, use a longer prefix")
    return matches[0]


@tasks.command('list')
@click.option('--status', type=click.Choice([status.value for status in TaskStatus]), help='Only show tasks with this status')
@handle_error
def list_tasks(status):
    """List enhancement tasks"""
    queue = build_services().queue
    shown = [task for task in queue.snapshot() if status is None or task.status.value == status]

    if not shown:
        click.echo("No enhancement tasks")
        return

    for task in shown:
        print_task(task)

    stats = queue.stats()
    click.echo(
        f"\n{stats['total']} tasks: {stats['pending']} pending, {stats['processing']} processing, "
        f"{stats['completed']} completed, {stats['failed']} failed, {stats['paused']} paused"
    )


@tasks.command('run')
@click.option('--no-progress', is_flag=True, help='Do not show a progress bar')
@handle_error
def run_tasks(no_progress):
    """Process pending enhancement tasks"""
    services = build_services()
    tracked = {task.id for task in services.queue.tasks_with_status([TaskStatus.PENDING])}
    if not tracked:
        click.echo("No pending tasks")
        return

    asyncio.run(run_until_idle(services, tracked, show_progress=not no_progress))
    print_summary(task for task in services.queue.snapshot() if task.id in tracked)


@tasks.command('retry')
@click.argument('task_id')
@handle_error
def retry_task(task_id):
    """Reset a task to pending with a fresh retry budget"""
    queue = build_services().queue
    task_id = _resolve_task_id(queue, task_id)
    if queue.retry_task(task_id):
        click.echo(f"Task {task_id[:8]} will be retried on the next 'melodix tasks run'")
    else:
        click.echo(click.style(f"Task {task_id[:8]} cannot be retried while its song has another active task", fg='yellow'))


@tasks.command('remove')
@click.argument('task_id')
@handle_error
def remove_task(task_id):
    """Remove a task"""
    queue = build_services().queue
    task_id = _resolve_task_id(queue, task_id)
    queue.remove_task(task_id)
    click.echo(f"Removed task {task_id[:8]}")


@tasks.command('clear')
@click.option('--completed', is_flag=True, help='Clear completed tasks')
@click.option('--failed', is_flag=True, help='Clear failed tasks')
@handle_error
def clear_tasks(completed, failed):
    """Remove finished tasks (both kinds when no flag is given)"""
    queue = build_services().queue
    if not completed and not failed:
        completed = failed = True

    removed = 0
    if completed:
        removed += queue.clear_completed()
    if failed:
        removed += queue.clear_failed()
    click.echo(f"Removed {removed} tasks")


@tasks.command('pause')
@handle_error
def pause_tasks():
    """Pause all pending tasks"""
    count = build_services().queue.pause_all()
    click.echo(f"Paused {count} tasks")


@tasks.command('resume')
@handle_error
def resume_tasks():
    """Resume all paused tasks"""
    count = build_services().queue.resume_all()
    click.echo(f"Resumed {count} tasks")


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--resolution', '-r', type=click.IntRange(1, 1000), help='Number of bars')
@click.option('--height', type=click.IntRange(1, 40), default=8, show_default=True, help='Rows of output')
@handle_error
def waveform(file, resolution, height):
    """Render the waveform of an audio FILE"""
    adapter = SignalSourceAdapter.from_settings(get_settings())
    try:
        peaks = asyncio.run(adapter.load_track(file, resolution))
    finally:
        adapter.close()

    if not peaks:
        click.echo(click.style("Could not decode audio file", fg='red'), err=True)
        sys.exit(1)

    for row in render_bars(peaks, height):
        click.echo(click.style(row, fg='cyan'))


def spectrum_line(data, bars: int) -> str:
    """Collapse byte frequency data into `bars` characters"""
    step = max(1, len(data) // bars)
    chars = []
    for i in range(bars):
        chunk = data[i * step:(i + 1) * step]
        level = int(chunk.max()) if len(chunk) else 0
        chars.append(SPECTRUM_LEVELS[level * (len(SPECTRUM_LEVELS) - 1) // 255])
    return ''.join(chars)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--frames', '-n', type=click.IntRange(1, 10000), default=30, show_default=True, help='Frames to render')
@click.option('--fps', type=click.IntRange(1, 120), default=30, show_default=True, help='Frames per second of audio')
@click.option('--bars', type=click.IntRange(4, 256), default=64, show_default=True, help='Bars per frame')
@handle_error
def spectrum(file, frames, fps, bars):
    """Render the spectrum of an audio FILE as if it were playing"""
    decoded = decode_audio(file)
    adapter = SignalSourceAdapter.from_settings(get_settings())
    hop = max(1, decoded.sample_rate // fps)

    try:
        adapter.set_playing(True)
        for frame in range(frames):
            block = decoded.samples[frame * hop:(frame + 1) * hop]
            if len(block) == 0:
                break
            adapter.feed(block)
            position = format_duration((frame * hop) / decoded.sample_rate)
            click.echo(f"{position:>6} {spectrum_line(adapter.get_frequency_data(), bars)}")
    finally:
        adapter.close()


@cli.group()
def extensions():
    """Manage installed extensions"""
    pass


@extensions.command('list')
@handle_error
def list_extensions():
    """List installed extensions"""
    registry = build_services().extensions
    for ext in registry.snapshot():
        state = click.style("enabled ", fg='green') if ext.enabled else click.style("disabled", fg='yellow')
        click.echo(f"{state} {ext.id:<22} {ext.name} v{ext.version} ({ext.type.value})")
        if ext.description:
            click.echo(f"         {ext.description}")


@extensions.command('toggle')
@click.argument('extension_id')
@handle_error
def toggle_extension(extension_id):
    """Enable or disable an extension"""
    enabled = build_services().extensions.toggle(extension_id)
    if enabled is None:
        click.echo(click.style(f"Unknown extension: {extension_id}", fg='red'), err=True)
        sys.exit(1)
    click.echo(f"{extension_id} is now {'enabled' if enabled else 'disabled'}")


@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
def show():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:\n")

    click.echo("Enhancement:")
    click.echo(f"   Concurrent tasks: {settings.enhancement.concurrency}")
    click.echo(f"   Automatic retries: {settings.enhancement.max_retries}")
    click.echo(f"   Lookup timeout: {settings.enhancement.lookup_timeout}s")
    click.echo(f"   Minimum lyrics length: {settings.enhancement.min_lyrics_length}")
    click.echo(f"   Task store: {settings.get_tasks_path()}")

    click.echo("\nVisualizer:")
    click.echo(f"   FFT size: {settings.visualizer.fft_size}")
    click.echo(f"   Smoothing: {settings.visualizer.smoothing}")
    click.echo(f"   Range: {settings.visualizer.min_decibels}dB to {settings.visualizer.max_decibels}dB")
    click.echo(f"   Waveform resolution: {settings.visualizer.waveform_resolution}")

    click.echo("\nProviders:")
    click.echo(f"   MusicBrainz: {settings.providers.musicbrainz_url}")
    click.echo(f"   LRCLIB: {settings.providers.lrclib_url}")
    click.echo(f"   Cover Art Archive: {settings.providers.coverart_url}")
    click.echo(f"   Requests per second: {settings.providers.rate_limit}")

    click.echo("\nLogging:")
    current_log = get_current_log_file()
    click.echo(f"   Level: {settings.logging.level}")
    click.echo(f"   File: {current_log if current_log else 'console only'}")


@config.command()
def validate():
    """Validate current configuration"""
    if get_settings().validate():
        click.echo(click.style("Configuration is valid", fg='green'))
    else:
        click.echo(click.style("Configuration has errors", fg='red'), err=True)
        sys.exit(1)


# Entry point for module execution
if __name__ == '__main__':
    cli()
