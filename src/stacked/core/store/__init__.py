"""Relationship store subpackage.

Persists tracked branches, parent edges and sync runs per repository.
"""

from stacked.core.store.abc import BranchRecord, RelationshipStore, SyncRun
from stacked.core.store.sqlite import SqlRelationshipStore
