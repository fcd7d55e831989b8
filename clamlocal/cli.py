import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
import yaml

from .config import ConfigManager
from .provision.builder import BuildOptions
from .provision.errors import ProvisionError, DatabaseEmptyError
from .provision.freshclam import DatabaseUpdater, list_database_files
from .provision.models import ModeFlags, ProvisionPaths, StageStatus
from .provision.pipeline import ProvisionPipeline
from .provision.runner import CommandRunner
from .provision.scripts import ScriptEmitter
from .provision.toolchain import DependencyProber
from .provision.verifier import Verifier, render_report
from .scan import EXIT_INFECTED, ScanOptions, ScanWrapper, parse_clamscan_output
from .subtree import ConsoleInput, GitClient, NotAGitRepositoryError, SubtreeTool

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _setup_logging(log_level: str, logs_dir: Optional[str] = None):
    """Setup logging configuration"""
    level = getattr(logging, log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if logs_dir:
        log_dir = Path(logs_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / 'clamlocal.log'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def _make_verifier(config_manager: ConfigManager, paths: ProvisionPaths, runner: CommandRunner) -> Verifier:
    verify = config_manager.get_config().verify
    return Verifier(
        paths,
        runner,
        expected_binaries=verify.expected_binaries,
        system_bin_dirs=[Path(p) for p in verify.system_bin_dirs],
        system_lib_dirs=[Path(p) for p in verify.system_lib_dirs],
        version_timeout=verify.version_timeout,
    )


def _banner(title: str):
    click.echo("")
    click.echo("=" * 40)
    click.echo(f"  {title}")
    click.echo("=" * 40)


@click.group()
@click.option('--config', '-c', default=None, help='Configuration file path (default: clamlocal.yaml if present)')
@click.option('--log-level', '-l', default=None, help='Override the configured log level')
@click.pass_context
def cli(ctx, config, log_level):
    """Local, isolated ClamAV build and maintenance tool"""
    ctx.ensure_object(dict)
    try:
        config_manager = ConfigManager(config)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    app_config = config_manager.get_config()
    _setup_logging(log_level or app_config.log_level, app_config.logs_dir)
    ctx.obj['config_manager'] = config_manager


@cli.command(context_settings={'ignore_unknown_options': True, 'allow_extra_args': True})
@click.option('--clean', is_flag=True, help='Remove the build directory first')
@click.option('--build-only', is_flag=True, help='Configure and compile, do not install')
@click.option('--install-only', is_flag=True, help='Install an existing build, emit scripts and verify')
@click.option('--verify', is_flag=True, help='Verify the installation after installing')
@click.option('--full', is_flag=True, help='Clean, build, install and verify')
@click.option('--project-root', '-p', default=None, help='Project root (default: configured or current directory)')
@click.option('--jobs', '-j', type=int, default=None, help='Parallel compile jobs (default: CPU count)')
@click.option('--dry-run', is_flag=True, help='Log external commands instead of running them')
@click.pass_context
def provision(ctx, clean, build_only, install_only, verify, full, project_root, jobs, dry_run):
    """Build and install ClamAV into the project-local prefix"""
    config_manager: ConfigManager = ctx.obj['config_manager']
    paths = config_manager.build_paths(project_root)
    options: BuildOptions = config_manager.build_options(jobs=jobs)
    deps = config_manager.get_config().dependencies
    runner = CommandRunner(dry_run=dry_run)

    if ctx.args:
        logging.getLogger(__name__).debug(f"Ignoring unrecognized arguments: {ctx.args}")

    _banner("ClamAV local build")
    click.echo(f"Project root: {paths.project_root}")
    click.echo(f"Source dir:   {paths.source_dir}")
    click.echo(f"Install dir:  {paths.prefix}")
    click.echo(f"Build dir:    {paths.build_dir}")

    pipeline = ProvisionPipeline(
        paths,
        runner=runner,
        options=options,
        prober=DependencyProber(required=deps.required, optional=deps.optional),
        verifier=_make_verifier(config_manager, paths, runner),
    )
    flags = ModeFlags(
        clean=clean, build_only=build_only, install_only=install_only, verify=verify, full=full
    )
    result = asyncio.run(pipeline.run(flags))

    if result.report is not None:
        render_report(result.report, paths)

    click.echo("")
    for stage_result in result.stage_results:
        if stage_result.status == StageStatus.COMPLETED:
            click.echo(f"  ✓ {stage_result.stage.value}: {stage_result.message}")
        else:
            click.secho(f"  ✗ {stage_result.stage.value}: {stage_result.error_message}", fg='red')

    if result.exit_code == 0:
        click.secho("Done", fg='green')
    elif 'error' in result.extra:
        click.secho(f"Error: {result.extra['error']}", fg='red')
    ctx.exit(result.exit_code)


@cli.command()
@click.option('--project-root', '-p', default=None, help='Project root')
@click.pass_context
def verify(ctx, project_root):
    """Verify an existing local installation"""
    config_manager: ConfigManager = ctx.obj['config_manager']
    paths = config_manager.build_paths(project_root)
    runner = CommandRunner()
    report = asyncio.run(_make_verifier(config_manager, paths, runner).verify())
    render_report(report, paths)
    ctx.exit(report.exit_code)


@cli.command('emit-scripts')
@click.option('--project-root', '-p', default=None, help='Project root')
@click.pass_context
def emit_scripts(ctx, project_root):
    """Regenerate the environment loader and the database updater"""
    paths = ctx.obj['config_manager'].build_paths(project_root)
    for path in ScriptEmitter(paths).emit():
        click.echo(f"Wrote {path}")


@cli.command('update-db')
@click.option('--project-root', '-p', default=None, help='Project root')
@click.option('--prefix', default=None, help='Install prefix holding freshclam (default: configured)')
@click.option('--database-dir', default=None, help='Signature database directory (default: configured)')
@click.option('--timeout', type=float, default=None, help='Abort freshclam after this many seconds')
@click.argument('freshclam_args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def update_db(ctx, project_root, prefix, database_dir, timeout, freshclam_args):
    """Download or refresh the signature database with the local freshclam"""
    paths = ctx.obj['config_manager'].build_paths(
        project_root, prefix=prefix, database_dir=database_dir
    )
    updater = DatabaseUpdater(paths, CommandRunner(), timeout=timeout)

    _banner("ClamAV signature update")
    click.echo(f"Database dir: {paths.database_dir}")
    try:
        result = asyncio.run(updater.update(list(freshclam_args)))
    except ProvisionError as e:
        click.secho(f"✗ {e}", fg='red')
        ctx.exit(1)

    if not result.ok:
        click.secho(f"✗ freshclam exited with code {result.return_code}", fg='red')
        ctx.exit(1)

    click.secho("✓ Signature database updated", fg='green')
    for path in list_database_files(paths.database_dir):
        click.echo(f"  {path.name}\t{path.stat().st_size} bytes")


@cli.command()
@click.argument('path')
@click.option('--recursive', '-r', is_flag=True, help='Scan directories recursively')
@click.option('--verbose', '-v', is_flag=True, help='Verbose clamscan output')
@click.option('--move', 'move_dir', default=None, help='Move infected files into this directory')
@click.option('--copy', 'copy_dir', default=None, help='Copy infected files into this directory')
@click.option('--exclude', default=None, help='Skip files matching this pattern')
@click.option('--exclude-dir', default=None, help='Skip directories matching this pattern')
@click.option('--project-root', '-p', default=None, help='Project root')
@click.pass_context
def scan(ctx, path, recursive, verbose, move_dir, copy_dir, exclude, exclude_dir, project_root):
    """Scan a file or directory with the local clamscan"""
    paths = ctx.obj['config_manager'].build_paths(project_root)
    options = ScanOptions(
        recursive=recursive,
        verbose=verbose,
        move_dir=move_dir,
        copy_dir=copy_dir,
        exclude=exclude,
        exclude_dir=exclude_dir,
    )

    _banner("ClamAV scan")
    click.echo(f"Path:     {path}")
    click.echo(f"Database: {paths.database_dir}")
    try:
        result = asyncio.run(ScanWrapper(paths).scan(path, options))
    except DatabaseEmptyError as e:
        click.secho(f"✗ {e}", fg='red')
        click.echo(f"Run first: {paths.db_update_script}")
        ctx.exit(1)
    except FileNotFoundError as e:
        click.secho(f"✗ {e}", fg='red')
        ctx.exit(1)

    click.echo(result.stdout)
    if result.stderr:
        click.echo(result.stderr, err=True)

    if result.return_code == EXIT_INFECTED:
        detections = parse_clamscan_output(result.stdout)['detections']
        click.secho(f"⚠ {len(detections)} infected file(s)", fg='yellow')
    elif result.ok:
        click.secho("✓ Scan complete", fg='green')
    ctx.exit(result.return_code if result.return_code is not None else 1)


@cli.command()
@click.option('--repo', default='.', help='Repository to operate on')
@click.pass_context
def subtree(ctx, repo):
    """Interactive git subtree helper"""
    tool = SubtreeTool(GitClient(Path(repo)), ConsoleInput())
    try:
        ctx.exit(tool.run_menu())
    except NotAGitRepositoryError as e:
        click.secho(f"[ERROR] {e}", fg='red')
        ctx.exit(1)
    except (EOFError, click.Abort):
        ctx.exit(0)


@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show the effective configuration"""
    config_manager: ConfigManager = ctx.obj['config_manager']
    data = config_manager.get_config().model_dump(mode='json')
    click.echo(f"Configuration ({config_manager.config_path}):")
    click.echo("=" * 40)
    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))


@config.command()
@click.option('--output', '-o', default=None, help='Output file path')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def init(ctx, output, force):
    """Write the effective configuration to a YAML file"""
    config_manager: ConfigManager = ctx.obj['config_manager']
    target = Path(output) if output else config_manager.config_path
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists (use --force to overwrite)")
    config_manager.save_config(target)
    click.echo(f"Configuration written to: {target}")


if __name__ == '__main__':
    cli()
