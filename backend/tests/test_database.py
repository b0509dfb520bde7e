"""Tests for database setup."""

from sqlalchemy import inspect

from eventplan.core import database as db_module
from eventplan.core.database import init_db


class TestDatabase:
    def test_init_db(self):
        """init_db is idempotent and creates every table."""
        init_db()

        tables = set(inspect(db_module.engine).get_table_names())
        assert {
            "accounts",
            "events",
            "event_collaborators",
            "custom_roles",
            "subscriptions",
            "subscription_activations",
            "payments",
            "payment_request_keys",
        } <= tables
