"""Async SQLAlchemy datastore."""

from xmr_pos.datastore.client import Datastore
from xmr_pos.datastore.schema import create_tables, drop_tables, missing_tables

__all__ = ["Datastore", "create_tables", "drop_tables", "missing_tables"]
