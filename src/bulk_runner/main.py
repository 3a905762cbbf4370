"""CLI entrypoint for bulk-runner."""

import logging
from collections.abc import Iterable
from pathlib import Path

import rich_click as click

from bulk_runner import __version__
from bulk_runner.controllers import (
    RECONCILE_KEYS,
    BulkRunnerCliController,
    CampaignCommand,
    ReconcileCommand,
    ScoreCommand,
)
from bulk_runner.reconcile.models import DuplicateAction

click.rich_click.USE_MARKDOWN = True
CONTROLLER = BulkRunnerCliController()


@click.group()
@click.version_option(version=__version__, prog_name="bulk-runner")
@click.option("--verbose", is_flag=True, default=False, help="Log engine activity to stderr.")
def bulk_runner(verbose: bool) -> None:
    """Bulk operation runner CLI."""

    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@bulk_runner.command("score")
@click.argument("left")
@click.argument("right")
def score(left: str, right: str) -> None:
    """Print the fuzzy similarity score of two names."""

    _emit_lines(CONTROLLER.score(ScoreCommand(left=left, right=right)))


@bulk_runner.command("reconcile")
@click.option(
    "--existing",
    "existing_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="JSON file with records already stored.",
)
@click.option(
    "--candidates",
    "candidates_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="JSON file with records to import.",
)
@click.option(
    "--key",
    type=click.Choice(RECONCILE_KEYS),
    default="name",
    show_default=True,
    help="How candidates are matched against existing records.",
)
@click.option(
    "--duplicate-action",
    type=click.Choice([action.value for action in DuplicateAction]),
    default=DuplicateAction.IGNORE.value,
    show_default=True,
    help="Whether duplicates are skipped or selected for update.",
)
def reconcile(
    existing_path: Path,
    candidates_path: Path,
    key: str,
    duplicate_action: str,
) -> None:
    """Classify import candidates as new, duplicate, similar or invalid."""

    try:
        lines = CONTROLLER.reconcile(
            ReconcileCommand(
                existing_path=existing_path,
                candidates_path=candidates_path,
                key=key,
                duplicate_action=DuplicateAction(duplicate_action),
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@bulk_runner.command("campaign")
@click.option(
    "--contacts",
    "contacts_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="JSON file with contacts: id, name and phone.",
)
@click.option(
    "--message",
    required=True,
    help="Message template. {name} or {nome} is replaced with the contact name.",
)
@click.option(
    "--min-delay",
    type=click.FloatRange(min=0),
    default=None,
    help="Minimum seconds between sends. Defaults to BULK_RUNNER_JITTER_MIN_SECONDS.",
)
@click.option(
    "--max-delay",
    type=click.FloatRange(min=0),
    default=None,
    help="Maximum seconds between sends. Defaults to BULK_RUNNER_JITTER_MAX_SECONDS.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Walk the campaign without calling the gateway.",
)
def campaign(  # noqa: PLR0913
    contacts_path: Path,
    message: str,
    min_delay: float | None,
    max_delay: float | None,
    dry_run: bool,
) -> None:
    """Send a personalised message to each contact, paced with random delays.

    Press Ctrl-C to stop after the contact in flight.
    """

    try:
        _emit_lines(
            CONTROLLER.run_campaign(
                CampaignCommand(
                    contacts_path=contacts_path,
                    message=message,
                    min_delay_seconds=min_delay,
                    max_delay_seconds=max_delay,
                    dry_run=dry_run,
                ),
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: Iterable[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    bulk_runner()
