"""Management command to bring metadata records and disk back in sync."""

import logging
from datetime import timedelta
from typing import Any, Final, final, override

from django.core.management.base import BaseCommand

from server.apps.files.logic.file_operations import (
    find_orphaned_files,
    find_stale_records,
    prune_stale_records,
    purge_orphan,
)

_DEFAULT_MIN_AGE_MINUTES: Final = 60

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Prune stale records and optionally purge orphaned files."""

    help = 'Prune records without payload and purge files without record'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be removed without removing',
        )
        parser.add_argument(
            '--orphans',
            action='store_true',
            help='Also purge payloads and thumbnails that no record references',
        )
        parser.add_argument(
            '--min-age',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Minimum age in minutes of an orphaned file '
                f'(default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconcile command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']

        if dry_run:
            stale = find_stale_records()
            for record in stale:
                self.stdout.write(f'Would prune record: {record}')
            self.stdout.write(
                self.style.SUCCESS(f'Would prune {len(stale)} records'),
            )
        else:
            stale = prune_stale_records()
            for record in stale:
                logger.info('Pruned stale record: %s', record)
            self.stdout.write(
                self.style.SUCCESS(f'Pruned {len(stale)} records'),
            )

        if options['orphans']:
            self._purge_orphans(
                min_age=timedelta(minutes=options['min_age']),
                dry_run=dry_run,
            )

    def _purge_orphans(self, min_age: timedelta, dry_run: bool) -> None:
        orphans = find_orphaned_files(min_age)
        count = 0
        failed = 0

        for orphan in orphans:
            if dry_run:
                self.stdout.write(
                    f'Would purge {orphan.kind}: {orphan.storage_key}',
                )
                count += 1
                continue

            try:
                purge_orphan(orphan)
                count += 1
            except OSError as exc:
                self.stderr.write(
                    f'Failed to purge {orphan.storage_key}: {exc}',
                )
                logger.exception(
                    'Failed to purge orphaned %s: %s',
                    orphan.kind,
                    orphan.storage_key,
                )
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} orphaned files'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} orphaned files, {failed} failed',
                ),
            )
