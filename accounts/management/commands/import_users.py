# accounts/management/commands/import_users.py
"""
Django management command to load the user directory from a spreadsheet
Usage: python manage.py import_users path/to/users.xlsx
       python manage.py import_users path/to/users.csv
"""

from datetime import datetime

import pandas as pd
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from algorithms.blood_groups import is_valid_blood_group, normalize_blood_group
from algorithms.haversine import CoordinateError, parse_latitude, parse_longitude
from algorithms.parsing import parse_bool
from matching.cache import invalidate_matching_cache

User = get_user_model()

REQUIRED_COLUMNS = ['name', 'email']


def read_table(path):
    if str(path).lower().endswith('.csv'):
        return pd.read_csv(path)
    return pd.read_excel(path)


def cell(row, column, default=None):
    value = row.get(column, default)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    return value


def parse_date(value):
    if value is None:
        return None
    if isinstance(value, str):
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    return pd.to_datetime(value).date()


class Command(BaseCommand):
    help = 'Import users (donors and authorities) from a CSV or Excel file'

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Path to the CSV or Excel file')
        parser.add_argument(
            '--default-password',
            default='ChangeMe123!',
            help='Password set on newly created accounts'
        )

    def handle(self, *args, **options):
        path = options['path']

        try:
            df = read_table(path)
        except FileNotFoundError:
            raise CommandError(f'File not found: {path}')

        missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing_columns:
            raise CommandError(f'Missing columns: {", ".join(missing_columns)}')

        self.stdout.write(f'Found {len(df)} rows in {path}')

        created_count = 0
        updated_count = 0
        skipped_count = 0

        with transaction.atomic():
            for index, row in df.iterrows():
                line = index + 2
                name = str(cell(row, 'name', '')).strip()
                email = str(cell(row, 'email', '')).strip().lower()

                if not name or not email:
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: Missing name or email'))
                    skipped_count += 1
                    continue

                blood_group = normalize_blood_group(cell(row, 'blood_group', ''))
                if blood_group and not is_valid_blood_group(blood_group):
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: Invalid blood group {blood_group}'))
                    skipped_count += 1
                    continue

                try:
                    latitude = parse_latitude(cell(row, 'latitude'))
                    longitude = parse_longitude(cell(row, 'longitude'))
                except CoordinateError as e:
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: {e.message}'))
                    skipped_count += 1
                    continue

                # Partial coordinates are no location
                if latitude is None or longitude is None:
                    latitude = longitude = None

                try:
                    last_donation_date = parse_date(cell(row, 'last_donation_date'))
                except ValueError as e:
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: Invalid date ({e})'))
                    skipped_count += 1
                    continue

                role = str(cell(row, 'role', User.ROLE_USER)).strip().lower()
                if role not in dict(User.ROLE_CHOICES):
                    role = User.ROLE_USER

                user, created = User.objects.update_or_create(
                    email=email,
                    defaults={
                        'username': email,
                        'name': name,
                        'phone': str(cell(row, 'phone', '')).strip(),
                        'role': role,
                        'blood_group': blood_group,
                        'location': str(cell(row, 'location', '')).strip(),
                        'city': str(cell(row, 'city', '')).strip(),
                        'state': str(cell(row, 'state', '')).strip(),
                        'latitude': latitude,
                        'longitude': longitude,
                        'is_donor': parse_bool(cell(row, 'is_donor', False)),
                        'is_verified': parse_bool(cell(row, 'is_verified', False)),
                        'last_donation_date': last_donation_date,
                    }
                )

                if created:
                    user.set_password(options['default_password'])
                    user.save(update_fields=['password'])
                    created_count += 1
                    self.stdout.write(f'Created: {user.name} ({user.blood_group or "-"}) - {user.email}')
                else:
                    updated_count += 1
                    self.stdout.write(f'Updated: {user.name} ({user.blood_group or "-"})')

        if created_count or updated_count:
            invalidate_matching_cache()

        self.stdout.write(
            self.style.SUCCESS(
                f'Import complete! Created: {created_count}, '
                f'Updated: {updated_count}, Skipped: {skipped_count}'
            )
        )
