"""
SQLAlchemy models package.

``db`` is the single Flask-SQLAlchemy instance bound in ``create_app``.
Model modules import it from here:

    from wbs_platform.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
