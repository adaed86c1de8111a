# datalayer/remote_store.py

import asyncio
import functools
from typing import Any, Callable, Dict, List, Optional, Tuple

from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .config import settings
from .errors import RecordNotFoundError, StoreError
from .models import ChangeEvent, new_id

ChangeHandler = Callable[[ChangeEvent], None]

_EVENT_TYPES = {"insert": "insert", "update": "update", "replace": "update", "delete": "delete"}


def build_find_args(
    filter_column: Optional[str] = None,
    filter_value: Any = None,
    order_by: Optional[str] = None,
    ascending: bool = False,
    limit: Optional[int] = None,
    select: Optional[str] = None,
) -> Tuple[Dict[str, Any], Dict[str, int], Optional[Tuple[str, int]], int]:
    """Translates row-level query options into find() filter, projection, sort and limit."""
    query = {}
    if filter_column and filter_value is not None:
        query[filter_column] = filter_value

    projection = {"_id": 0}
    if select and select.strip() != "*":
        for column in select.split(","):
            column = column.strip()
            if column:
                projection[column] = 1

    sort = (order_by, 1 if ascending else -1) if order_by else None
    # pymongo treats a limit of 0 as "no limit"
    return query, projection, sort, limit or 0


def strip_internal_id(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    return {k: v for k, v in document.items() if k != "_id"}


def change_to_event(collection: str, change: Dict[str, Any]) -> Optional[ChangeEvent]:
    """Converts a raw change stream document; returns None for non-row events (drop, invalidate...)."""
    event = _EVENT_TYPES.get(change.get("operationType"))
    if event is None:
        return None
    record = change.get("fullDocument") or change.get("fullDocumentBeforeChange")
    return ChangeEvent(event=event, table=collection, record=strip_internal_id(record))


def _wrap_driver_errors(method):
    @functools.wraps(method)
    async def wrapper(self, collection, *args, **kwargs):
        try:
            return await method(self, collection, *args, **kwargs)
        except PyMongoError as e:
            raise StoreError(f"{method.__name__} on '{collection}' failed: {e}") from e
    return wrapper


class Subscription:
    """Pumps one collection's change stream into a handler until closed."""

    def __init__(self, collection: str, stream, handler: ChangeHandler):
        self.collection = collection
        self._stream = stream
        self._handler = handler
        self._task = asyncio.create_task(self._pump())

    @property
    def closed(self) -> bool:
        return self._task.done()

    async def _pump(self):
        try:
            async for change in self._stream:
                event = change_to_event(self.collection, change)
                if event is None:
                    continue
                try:
                    self._handler(event)
                except Exception as e:
                    print(f"---REMOTE STORE: Handler for '{self.collection}' failed: {e}---")
        except PyMongoError as e:
            print(f"---REMOTE STORE: Change stream for '{self.collection}' stopped: {e}---")

    async def close(self):
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        await self._stream.close()
        print(f"---REMOTE STORE: Unsubscribed from '{self.collection}'---")


class RemoteStore:
    """Handles all database operations against the farm collections in MongoDB."""

    def __init__(self, client: Optional[AsyncMongoClient] = None, db_name: Optional[str] = None):
        self.client = client or AsyncMongoClient(settings.final_mongo_uri)
        self.db = self.client[db_name or settings.db_name]
        print("---REMOTE STORE: Connected to MongoDB---")

    async def ping(self) -> bool:
        await self.client.admin.command("ping")
        return True

    async def close(self):
        await self.client.close()

    @_wrap_driver_errors
    async def select(self, collection: str, **options) -> List[Dict[str, Any]]:
        query, projection, sort, limit = build_find_args(**options)
        cursor = self.db[collection].find(query, projection)
        if sort:
            cursor = cursor.sort(*sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list()

    async def select_single(self, collection: str, **options) -> Dict[str, Any]:
        options["limit"] = 1
        rows = await self.select(collection, **options)
        if not rows:
            raise RecordNotFoundError(f"No rows returned from '{collection}'", code="no_rows")
        return rows[0]

    @_wrap_driver_errors
    async def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(record)
        if not document.get("id"):
            document["id"] = new_id()
        await self.db[collection].insert_one(document)
        return strip_internal_id(document)

    @_wrap_driver_errors
    async def update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if changes:
            document = await self.db[collection].find_one_and_update(
                {"id": record_id},
                {"$set": changes},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        else:
            document = await self.db[collection].find_one({"id": record_id}, {"_id": 0})
        if document is None:
            raise RecordNotFoundError(f"No record '{record_id}' in '{collection}'")
        return document

    @_wrap_driver_errors
    async def update_where(self, collection: str, column: str, value: Any, changes: Dict[str, Any]) -> int:
        result = await self.db[collection].update_many({column: value}, {"$set": changes})
        return result.matched_count

    @_wrap_driver_errors
    async def delete(self, collection: str, record_id: str) -> bool:
        result = await self.db[collection].delete_one({"id": record_id})
        if result.deleted_count == 0:
            raise RecordNotFoundError(f"No record '{record_id}' in '{collection}'")
        return True

    @_wrap_driver_errors
    async def delete_all(self, collection: str) -> int:
        result = await self.db[collection].delete_many({})
        return result.deleted_count

    @_wrap_driver_errors
    async def subscribe(self, collection: str, handler: ChangeHandler) -> Subscription:
        """Opens the change stream before returning so no event after this call is missed."""
        stream = await self.db[collection].watch(full_document="updateLookup")
        print(f"---REMOTE STORE: Subscribed to '{collection}'---")
        return Subscription(collection, stream, handler)
