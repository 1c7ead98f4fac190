"""
In-memory stand-ins for Motor collections.

Motor collection methods that hit the server are coroutines; `find` and
`aggregate` return cursors synchronously. The fakes follow that split.
"""

from copy import deepcopy
from unittest.mock import AsyncMock, MagicMock

from pymongo import ReturnDocument
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult


class FakeCursor:
    """Cursor over a fixed list of documents."""

    def __init__(self, documents=None):
        self.documents = list(documents or [])

    def sort(self, *args, **kwargs):
        return self

    def skip(self, count):
        return self

    def limit(self, count):
        return self

    async def to_list(self, length=None):
        return list(self.documents)

    def __aiter__(self):
        self._iterator = iter(self.documents)
        return self

    async def __anext__(self):
        try:
            return next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration


def update_result(matched=1, modified=None):
    return UpdateResult({"n": matched, "nModified": matched if modified is None else modified}, True)


def delete_result(deleted=1):
    return DeleteResult({"n": deleted}, True)


def insert_result(inserted_id):
    return InsertOneResult(inserted_id, True)


def make_collection(name="fake"):
    collection = MagicMock()
    collection.name = name
    for method in (
        "find_one",
        "find_one_and_update",
        "update_one",
        "update_many",
        "insert_one",
        "delete_one",
        "count_documents",
        "bulk_write",
        "create_index",
        "index_information",
        "drop_indexes",
    ):
        setattr(collection, method, AsyncMock())
    collection.update_one.return_value = update_result()
    collection.update_many.return_value = update_result()
    collection.delete_one.return_value = delete_result()
    collection.count_documents.return_value = 0
    collection.find = MagicMock(return_value=FakeCursor())
    collection.aggregate = MagicMock(return_value=FakeCursor())
    return collection



class UserDocumentStore:
    """
    One user document behind a fake collection, updated with the operator
    semantics the services rely on: `$set` (including positional `$` after
    an `$elemMatch`), `$inc`, `$addToSet`, `$push` with
    `$each/$position/$slice`, and `$pull` with equality, `$lt` and `$ne`
    conditions.
    """

    def __init__(self, document):
        self.document = document

    def install(self, collection):
        collection.find_one.side_effect = self.find_one
        collection.find_one_and_update.side_effect = self.find_one_and_update
        collection.update_one.side_effect = self.update_one
        collection.count_documents.side_effect = self.count_documents
        collection.find.side_effect = self.find
        return self

    # Query side

    def matches(self, query):
        return _matches_document(self.document, query)

    async def find_one(self, query, projection=None, **kwargs):
        return deepcopy(self.document) if self.matches(query) else None

    async def count_documents(self, query, **kwargs):
        return 1 if self.matches(query) else 0

    def find(self, query, projection=None, **kwargs):
        return FakeCursor([deepcopy(self.document)] if self.matches(query) else [])

    # Update side

    async def update_one(self, query, update, **kwargs):
        if not self.matches(query):
            return update_result(matched=0, modified=0)
        before = deepcopy(self.document)
        self._apply(query, update)
        return update_result(matched=1, modified=int(before != self.document))

    async def find_one_and_update(self, query, update, projection=None, return_document=ReturnDocument.BEFORE, **kwargs):
        if not self.matches(query):
            return None
        before = deepcopy(self.document)
        self._apply(query, update)
        return before if return_document == ReturnDocument.BEFORE else deepcopy(self.document)

    def _apply(self, query, update):
        for path, value in (update.get("$set") or {}).items():
            _set_path(self.document, _positional(self.document, query, path), value)

        for path, amount in (update.get("$inc") or {}).items():
            current = _values(self.document, path)[0] or 0
            _set_path(self.document, path, current + amount)

        for path, value in (update.get("$addToSet") or {}).items():
            array = _array_at(self.document, path)
            for item in value["$each"] if isinstance(value, dict) and "$each" in value else [value]:
                if item not in array:
                    array.append(item)

        for path, value in (update.get("$push") or {}).items():
            array = _array_at(self.document, path)
            if isinstance(value, dict) and "$each" in value:
                position = value.get("$position", len(array))
                array[position:position] = value["$each"]
                if "$slice" in value:
                    del array[value["$slice"]:]
            else:
                array.append(value)

        for path, condition in (update.get("$pull") or {}).items():
            array = _array_at(self.document, path)
            array[:] = [item for item in array if not _matches_element(item, condition)]


def _values(document, path):
    """Values at a dotted path, fanning out through arrays like MongoDB."""
    current = [document]
    for part in path.split("."):
        found = []
        for value in current:
            if isinstance(value, list):
                found.extend(item.get(part) for item in value if isinstance(item, dict))
            elif isinstance(value, dict):
                found.append(value.get(part))
            else:
                found.append(None)
        current = found
    flat = []
    for value in current:
        flat.extend(value if isinstance(value, list) else [value])
    return flat or [None]


def _comparable(left, right):
    return left is not None and right is not None and (
        isinstance(left, type(right)) or isinstance(right, type(left))
    )


def _matches_condition(values, condition):
    if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
        for operator, operand in condition.items():
            if operator == "$ne":
                if any(value == operand for value in values):
                    return False
            elif operator == "$lt":
                if not any(_comparable(value, operand) and value < operand for value in values):
                    return False
            elif operator == "$gte":
                if not any(_comparable(value, operand) and value >= operand for value in values):
                    return False
            elif operator == "$in":
                if not any(value in operand for value in values):
                    return False
            else:
                raise NotImplementedError(operator)
        return True
    return any(value == condition for value in values)


def _matches_element(element, condition):
    if isinstance(condition, dict) and not any(key.startswith("$") for key in condition):
        return all(_matches_condition(_values(element, key), value) for key, value in condition.items())
    return _matches_condition([element], condition)


def _matches_document(document, query):
    for key, condition in query.items():
        if isinstance(condition, dict) and "$elemMatch" in condition:
            array = _array_at(document, key, create=False)
            if not any(_matches_element(item, condition["$elemMatch"]) for item in array):
                return False
        elif not _matches_condition(_values(document, key), condition):
            return False
    return True


def _positional(document, query, path):
    if ".$." not in path:
        return path
    prefix, suffix = path.split(".$.", 1)
    match = query[prefix]["$elemMatch"]
    array = _array_at(document, prefix, create=False)
    index = next(i for i, item in enumerate(array) if _matches_element(item, match))
    return f"{prefix}.{index}.{suffix}"


def _array_at(document, path, create=True):
    parent = document
    parts = path.split(".")
    for part in parts[:-1]:
        if create:
            parent = parent.setdefault(part, {})
        else:
            parent = parent.get(part) or {}
    if create:
        return parent.setdefault(parts[-1], [])
    return parent.get(parts[-1]) or []


def _set_path(document, path, value):
    parent = document
    parts = path.split(".")
    for part in parts[:-1]:
        parent = parent[int(part)] if isinstance(parent, list) else parent.setdefault(part, {})
    if isinstance(parent, list):
        parent[int(parts[-1])] = value
    else:
        parent[parts[-1]] = value
