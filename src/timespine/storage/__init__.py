"""
timespine.storage - persistence collaborators for the timeline engine.

Modules:
    protocols.py   TimelineStore / StoreTransaction contracts
    memory.py      InMemoryTimelineStore (tests, single process)
    orm.py         TimespineBase, TemporalRecordTable
    session.py     Engine and session factories
    sql.py         SqlAlchemyTimelineStore
"""

from timespine.storage.memory import InMemoryTimelineStore
from timespine.storage.orm import TemporalRecordTable, TimespineBase
from timespine.storage.protocols import StoreTransaction, TimelineStore
from timespine.storage.session import create_timespine_engine, timespine_session_factory
from timespine.storage.sql import SqlAlchemyTimelineStore

__all__ = [
    "InMemoryTimelineStore",
    "SqlAlchemyTimelineStore",
    "StoreTransaction",
    "TemporalRecordTable",
    "TimelineStore",
    "TimespineBase",
    "create_timespine_engine",
    "timespine_session_factory",
]
