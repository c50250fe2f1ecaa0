import click
import functools
import logging
import os
import sys
import traceback
from pathlib import Path
from python_on_whales import docker
from python_on_whales.exceptions import DockerException

from . import constants
from .builder import Builder, CancellationToken, cancel_on_signals, read_image_file
from .cache import is_cache_key
from .config import Boxfile
from .runtime import DockerRuntime
from .utils import setup_logger, parse_module_levels
from .exceptions import (
    BoxBuilderError,
    ConfigurationError,
    UsageError,
    RuntimeCommunicationError,
    BuildError,
    BuildInterruptedError,
)
from . import __version__


def complete_boxfiles(ctx, param, incomplete):
    """Auto-complete .yml and .yaml Boxfiles in current directory"""
    cwd = Path.cwd()
    yml_files = list(cwd.glob('*.yml')) + list(cwd.glob('*.yaml'))
    return sorted(f.name for f in yml_files if f.name.startswith(incomplete))


def setup_logging(debug: bool, log_levels: str = None, log_file: str = None):
    """Setup logger with debug and module-level configuration"""
    module_levels = parse_module_levels(log_levels) if log_levels else None
    setup_logger(debug=debug, module_levels=module_levels, log_file=log_file)


def handle_errors(func):
    """Decorator mapping each error family to a logged message and an abort"""
    messages = (
        (ConfigurationError, "Boxfile error"),
        (UsageError, "Usage error"),
        (BuildInterruptedError, "Build interrupted"),
        (BuildError, "Build error"),
        (RuntimeCommunicationError, "Container runtime error"),
        (BoxBuilderError, "An unexpected application error occurred"),
    )

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BoxBuilderError as e:
            prefix = next(text for family, text in messages if isinstance(e, family))
            logging.error(f"{prefix}: {e}")
            ctx = click.get_current_context()
            if ctx.obj.get('debug'):
                traceback.print_exc()
            raise click.Abort()
        except DockerException as e:
            logging.error(f"Docker CLI error: {e}")
            ctx = click.get_current_context()
            if ctx.obj.get('debug'):
                traceback.print_exc()
            raise click.Abort()
    return wrapper


@handle_errors
def do_build(boxfile_path: str, tag: str, no_cache: bool, omit: tuple):
    """Execute build command"""
    if no_cache:
        os.environ[constants.NO_CACHE_ENV] = "1"
        logging.info("Cache disabled for this build")

    boxfile = Boxfile(Path(boxfile_path).resolve())
    runtime = DockerRuntime()
    token = CancellationToken()
    try:
        with cancel_on_signals(token):
            builder = Builder(boxfile, runtime, token=token, omit=omit, tag=tag)
            image_id = builder.run()
    finally:
        runtime.close()

    click.echo(image_id)
    if builder.tag:
        click.echo(f"Tagged: {builder.tag}")


@handle_errors
def do_cat(image: str, path: str):
    """Execute cat command"""
    runtime = DockerRuntime()
    try:
        content = read_image_file(runtime, image, path)
    finally:
        runtime.close()
    sys.stdout.buffer.write(content)
    sys.stdout.buffer.flush()


@handle_errors
def do_clean(all_images: bool):
    """Execute clean command"""
    scope = "all" if all_images else "untagged"
    logging.info(f"Cleaning {scope} images committed by box builds...")

    images = [
        img for img in docker.image.list(all=True)
        if is_cache_key(img.comment) and (all_images or not img.repo_tags)
    ]
    if not images:
        logging.info("No box images found.")
        return

    # children first, a parent with dependent images cannot be removed
    images.sort(key=lambda img: img.created, reverse=True)

    logging.info(f"Found {len(images)} box images, removing...")
    removed = 0
    for img in images:
        try:
            docker.image.remove(img.id, force=all_images)
            removed += 1
            logging.debug(f"Removed image: {img.id[:19]} ({img.comment})")
        except DockerException as e:
            logging.warning(f"Failed to remove image {img.id[:19]}: {e}")

    logging.info(f"Successfully cleaned {removed}/{len(images)} box images.")


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('-l', '--log-levels', help="Comma-separated per-module log levels (e.g., 'cache=DEBUG,commit=INFO')")
@click.option('-f', '--log-file', help='Path to log file')
@click.version_option(version=__version__, prog_name='boxbuilder')
@click.pass_context
def cli(ctx, debug, log_levels, log_file):
    """Box Builder - Build container images from a Boxfile step by step

    \b
    Examples:
      boxb build Boxfile.yml -t app:latest    Build and tag
      boxb build Boxfile.yml -n               Build without cache
      boxb cat app:latest /etc/os-release     Print a file from an image
      boxb clean                              Remove untagged build layers
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    setup_logging(debug, log_levels, log_file)


@cli.command()
@click.argument('boxfile', default=constants.DEFAULT_BOXFILE, shell_complete=complete_boxfiles)
@click.option('-t', '--tag', help='Tag the final image (overrides the Boxfile tag)')
@click.option('-n', '--no-cache', is_flag=True, help='Do not use or record cache keys')
@click.option('-o', '--omit', multiple=True, help='Treat the given step as undefined (repeatable)')
@click.pass_context
def build(ctx, boxfile, tag, no_cache, omit):
    """Build an image from a Boxfile"""
    do_build(boxfile, tag, no_cache, omit)


@cli.command()
@click.argument('image')
@click.argument('path')
@click.pass_context
def cat(ctx, image, path):
    """Print a file from an image"""
    do_cat(image, path)


@cli.command()
@click.option('--all', 'all_images', is_flag=True, help='Also remove tagged images built by boxb')
@click.pass_context
def clean(ctx, all_images):
    """Clean images left behind by box builds

    \b
    Examples:
      boxb clean          Remove untagged intermediate images
      boxb clean --all    Remove every image committed by a build step
    """
    do_clean(all_images)
