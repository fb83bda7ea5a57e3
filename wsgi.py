"""
WSGI entry point, also used by Flask-Migrate and the CLI commands.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-wbs --project-id 1
"""

from wbs_platform import create_app

app = create_app()
