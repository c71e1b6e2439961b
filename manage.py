#!/usr/bin/env python
"""
Django's command-line utility for administrative tasks.

Orbit Workspace - project management dashboard

Extra shortcuts:
    python manage.py setup    make migrations, migrate, collect static files, create admin, seed demo data
    python manage.py backup   dump every table to a timestamped JSON file
    python manage.py reset    flush, migrate and seed again
"""

import os
import sys


def main():
    """Run administrative tasks."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

    try:
        from django.core.management import call_command, execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc

    command = sys.argv[1] if len(sys.argv) > 1 else None

    if command in ('setup', 'backup', 'reset'):
        import django

        django.setup()

    if command == 'setup':
        print("🚀 Setting up Orbit Workspace...")
        call_command('makemigrations', 'core', 'board', 'workspace', 'capacity', 'budget')
        call_command('migrate')
        call_command('collectstatic', '--noinput')

        from apps.core.models import User

        if not User.objects.filter(is_superuser=True).exists():
            print("👤 Creating superuser admin / admin123")
            User.objects.create_superuser('admin', 'admin@orbit.local', 'admin123', role=User.ROLE_ADMIN)

        call_command('seed')
        print("✅ Setup finished! Sign in with admin / admin123")
        return

    if command == 'backup':
        from datetime import datetime

        backup_file = f"backup_orbit_{datetime.now():%Y%m%d_%H%M%S}.json"
        print("💾 Creating database backup...")
        with open(backup_file, 'w', encoding='utf-8') as output:
            call_command('dumpdata', '--indent', '2', '--natural-foreign', stdout=output)
        print(f"✅ Backup created: {backup_file}")
        return

    if command == 'reset':
        confirm = input("⚠️  This deletes ALL data. Continue? (y/N): ")
        if confirm.lower() == 'y':
            print("🗑️  Resetting database...")
            call_command('flush', '--noinput')
            call_command('migrate')
            call_command('seed')
            print("✅ Reset finished!")
        return

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
