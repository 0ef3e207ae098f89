"""
Collection Index

Identifier -> Record lookup over one Collection snapshot.
Built once per join pass, linear in the item count, no nested scans.
"""

from typing import Any, Dict, Hashable, Tuple

from .collection_store import Collection, Record

DEFAULT_KEY_FIELD = "id"


def build_index(collection: Collection, key_field: str = DEFAULT_KEY_FIELD) -> Dict[Hashable, Record]:
    """
    Index ``collection.items`` by ``key_field``.

    Duplicate identifiers overwrite (last wins); sources are expected to
    deduplicate already. Records without the key field are not indexed.
    """
    index: Dict[Hashable, Record] = {}
    for record in collection.items:
        key = record.get(key_field)
        if key is None:
            continue
        index[key] = record
    return index


class IndexCache:
    """
    Lazily-built indexes shared by the Join Specs of ONE join pass.

    Bound to the snapshot mapping it was created with; never reused across
    passes, so a republished collection is always re-indexed.
    """

    def __init__(self, collections: Dict[str, Collection]):
        self._collections = collections
        self._indexes: Dict[Tuple[str, str], Dict[Hashable, Record]] = {}

    def get(self, collection_name: str, key_field: str = DEFAULT_KEY_FIELD) -> Dict[Hashable, Any]:
        cache_key = (collection_name, key_field)
        index = self._indexes.get(cache_key)
        if index is None:
            collection = self._collections.get(collection_name)
            if collection is None:
                collection = Collection.disconnected()
            index = build_index(collection, key_field)
            self._indexes[cache_key] = index
        return index

    def __len__(self) -> int:
        return len(self._indexes)
