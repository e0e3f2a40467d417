"""
extensions.py — Flask extension singletons.

The extension objects are created here without an app and bound inside the
app factory with init_app(app), so tests can build isolated app instances:

    from backend.app.extensions import db, ma
"""

from flask_sqlalchemy import SQLAlchemy
from flask_marshmallow import Marshmallow

db = SQLAlchemy()

# Schema classes in app/schemas/ inherit from marshmallow.Schema, not
# ma.Schema: ma.Schema needs an application context, and the unit tests load
# schemas without one.
ma = Marshmallow()
