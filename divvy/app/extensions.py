"""
extensions.py — Flask extension singletons.

The SQLAlchemy object is created here with no app attached and bound inside
the app factory via db.init_app(app), so tests can build isolated app
instances:

    from divvy.app.extensions import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
