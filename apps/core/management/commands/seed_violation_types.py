# core/management/commands/seed_violation_types.py

"""
Seed the violation type catalogue.

USAGE EXAMPLES:
===============

# 1. Create the default types that do not exist yet
python manage.py seed_violation_types

# 2. Also reset severity, category, penalty and order of existing types
python manage.py seed_violation_types --update
"""

from django.core.management.base import BaseCommand
from django.db import transaction
import logging

from utils.context import ActingIdentity
from discipline.models import ViolationType

logger = logging.getLogger(__name__)

DEFAULT_VIOLATION_TYPES = [
    {'name': 'Late arrival', 'severity': 'light', 'category': 'conduct', 'order': 1},
    {'name': 'Wearing badge', 'severity': 'light', 'category': 'conduct', 'order': 2},
    {'name': 'Class cleanliness', 'severity': 'light', 'category': 'conduct', 'order': 3},
    {'name': 'Uniform violation', 'severity': 'medium', 'category': 'conduct', 'order': 4},
    {'name': 'Missing badge', 'severity': 'light', 'category': 'conduct', 'order': 5},
    {'name': 'Unexcused absence', 'severity': 'severe', 'category': 'discipline', 'order': 6},
    {'name': 'Phone use', 'severity': 'medium', 'category': 'discipline', 'order': 7},
    {'name': 'Talking in class', 'severity': 'light', 'category': 'academic', 'order': 8},
    {'name': 'Homework not done', 'severity': 'medium', 'category': 'academic', 'order': 9},
]


class Command(BaseCommand):
    help = 'Create the default violation types'

    def add_arguments(self, parser):
        parser.add_argument(
            '--update', action='store_true',
            help='Overwrite severity, category, penalty and order of existing types'
        )
        parser.add_argument(
            '--actor', type=str, default=None,
            help='Acting identity recorded on created rows'
        )

    def handle(self, *args, **options):
        created = updated = skipped = 0

        with transaction.atomic(), ActingIdentity(options['actor'], source='seed_violation_types'):
            for entry in DEFAULT_VIOLATION_TYPES:
                values = {
                    'severity': entry['severity'],
                    'category': entry['category'],
                    'default_penalty': entry.get('default_penalty', 1),
                    'order': entry['order'],
                    'is_active': True,
                }
                violation_type = ViolationType.objects.filter(name=entry['name']).first()

                if violation_type is None:
                    ViolationType.objects.create(name=entry['name'], **values)
                    created += 1
                    self.stdout.write(f"  Created: {entry['name']}")
                elif options['update']:
                    for field_name, value in values.items():
                        setattr(violation_type, field_name, value)
                    violation_type.save()
                    updated += 1
                    self.stdout.write(f"  Updated: {entry['name']}")
                else:
                    skipped += 1

        logger.info(f"Seeded violation types: {created} created, {updated} updated, {skipped} skipped")
        self.stdout.write(self.style.SUCCESS(
            f"Violation types: {created} created, {updated} updated, {skipped} already present"
        ))
