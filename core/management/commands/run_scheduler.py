"""
Management command to run all background jobs on in-process timers.

Runs until interrupted. Use --run-now to execute every job once at startup.
"""

from django.core.management.base import BaseCommand

from core.scheduler import Scheduler


class Command(BaseCommand):
    help = 'Run the background job scheduler'

    def add_arguments(self, parser):
        parser.add_argument(
            '--run-now',
            action='store_true',
            help='Run every job once before starting the timers.',
        )

    def handle(self, *args, **options):
        scheduler = Scheduler()

        if options['run_now']:
            for job in scheduler.jobs:
                self.stdout.write(f"  Running {job.name}...")
                job.run()

        scheduler.start()
        self.stdout.write(self.style.SUCCESS(
            f"Scheduler running {len(scheduler.jobs)} jobs. Press Ctrl+C to stop."
        ))
        try:
            while not scheduler.wait(timeout=60):
                pass
        except KeyboardInterrupt:
            self.stdout.write("Stopping scheduler...")
        finally:
            scheduler.stop()
