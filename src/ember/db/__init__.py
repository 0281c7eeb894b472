"""Ember document store."""

from ember.db.connection import Database
from ember.db.migrations import MIGRATIONS, run_migrations
from ember.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
