"""Management command to compare the physical mirror with the database."""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.logic.common import get_storage
from server.apps.drive.models import File, FileVersion, Folder

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Report drift left behind by interrupted operations.

    Checks that every folder has its directory, every file its live
    content with the recorded size, and every version its stored copy.
    """

    help = 'Verify that the physical mirror matches the database'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--user',
            type=int,
            default=None,
            help='Only check items of this user ID',
        )
        parser.add_argument(
            '--repair',
            action='store_true',
            help='Recreate missing folder directories',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the verification.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If problems remain after the run.
        """
        user_id = options['user']
        repair = options['repair']
        storage = get_storage()

        folders = Folder.objects.order_by('user_id', 'path')
        files = File.objects.order_by('user_id', 'id')
        versions = FileVersion.objects.select_related('file').order_by(
            'file_id',
            'version',
        )
        if user_id is not None:
            folders = folders.filter(user_id=user_id)
            files = files.filter(user_id=user_id)
            versions = versions.filter(file__user_id=user_id)

        problems = 0
        repaired = 0

        for folder in folders:
            storage_name = folder.storage_name()
            if storage.directory_exists(storage_name):
                continue
            if repair:
                try:
                    storage.make_directory(storage_name)
                except OSError as exc:
                    self.stderr.write(f'Failed to recreate {storage_name}: {exc}')
                    problems += 1
                    continue
                self.stdout.write(f'Recreated directory: {storage_name}')
                repaired += 1
                continue
            self.stdout.write(
                f'Missing directory: {storage_name} (folder ID {folder.id})',
            )
            problems += 1

        for file_instance in files:
            live_name = file_instance.file.name
            if not storage.exists(live_name):
                self.stdout.write(
                    f'Missing content: {live_name} (file ID {file_instance.id})',
                )
                problems += 1
                continue
            actual_size = storage.size(live_name)
            if actual_size != file_instance.size:
                self.stdout.write(
                    f'Size mismatch: {live_name} (file ID {file_instance.id}, '
                    f'recorded {file_instance.size}, on disk {actual_size})',
                )
                problems += 1

        for version in versions:
            if not storage.exists(version.content.name):
                self.stdout.write(
                    f'Missing version: {version.content.name} '
                    f'(file ID {version.file_id}, v{version.version})',
                )
                problems += 1

        logger.info(
            'Mirror verification finished: %d problems, %d repaired',
            problems,
            repaired,
        )

        if problems:
            raise CommandError(f'Mirror verification found {problems} problems')

        self.stdout.write(
            self.style.SUCCESS(
                f'Mirror is consistent ({repaired} directories recreated)',
            ),
        )
