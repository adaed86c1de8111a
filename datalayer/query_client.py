# datalayer/query_client.py

from typing import Any, List, Optional, Type

from pydantic import BaseModel

from .errors import DataLayerError
from .models import (
    COLLECTION_MODELS,
    CROP_HISTORY,
    DIAGNOSTIC_RESULTS,
    FIELDS,
    MAINTENANCE_TASKS,
    NOTIFICATIONS,
    SOIL_DATA,
    SYSTEM_STATUS,
    TASKS,
    USERS,
    WEATHER_DATA,
    WEATHER_FORECAST,
    ChangeEvent,
    Record,
    read_record,
)
from .refresh import CoalescedRefresh


class QueryOptions(BaseModel):
    """Equality filter, ordering, row limit and column projection for a collection read."""
    filter_column: Optional[str] = None
    filter_value: Any = None
    order_by: Optional[str] = None
    ascending: bool = False
    limit: Optional[int] = None
    select: Optional[str] = None

    @property
    def selects_all_columns(self) -> bool:
        return not self.select or self.select.strip() == "*"


class LiveQuery:
    """
    A read of one collection that stays fresh.
    Any change notification on the collection re-runs the same read and
    replaces `data` wholesale. Read failures land in `error`; `data` keeps
    its previous value. A failed subscription is kept in `subscription_error`
    and leaves `live` False.
    """

    def __init__(
        self,
        store,
        collection: str,
        options: Optional[QueryOptions] = None,
        model: Optional[Type[Record]] = None,
    ):
        self.store = store
        self.collection = collection
        self.options = options or QueryOptions()
        self.model = model or COLLECTION_MODELS.get(collection)
        self.data: Optional[List[Any]] = None
        self.loading = True
        self.error: Optional[Exception] = None
        self.subscription_error: Optional[Exception] = None
        self._subscription = None
        self._refetch = CoalescedRefresh(self._read_once)

    async def start(self) -> "LiveQuery":
        # Subscribe before the first read so no change in between is missed
        try:
            self._subscription = await self.store.subscribe(self.collection, self._on_change)
        except DataLayerError as e:
            print(f"---LIVE QUERY: Could not subscribe to '{self.collection}': {e}---")
            self.subscription_error = e
        await self.refetch()
        return self

    @property
    def live(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def refetch(self):
        await self._refetch()

    async def wait_for_refetch(self):
        await self._refetch.wait()

    def _on_change(self, event: ChangeEvent):
        self._refetch.request()

    async def _read_once(self):
        self.loading = True
        try:
            rows = await self.store.select(self.collection, **self.options.model_dump())
            if self.model is not None and self.options.selects_all_columns:
                rows = [read_record(self.model, row) for row in rows]
            self.data = rows
            self.error = None
        except DataLayerError as e:
            print(f"---LIVE QUERY: Read of '{self.collection}' failed: {e}---")
            self.error = e
        finally:
            self.loading = False

    async def close(self):
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        await self._refetch.cancel()

    async def __aenter__(self) -> "LiveQuery":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


# --- Queries used by the dashboard views ---

def users_query(store) -> LiveQuery:
    return LiveQuery(store, USERS, QueryOptions(order_by="date_added", ascending=False))


def fields_query(store) -> LiveQuery:
    return LiveQuery(store, FIELDS, QueryOptions(order_by="name", ascending=True))


def tasks_query(store, status: Optional[str] = None) -> LiveQuery:
    filtered = status is not None and status != "all"
    return LiveQuery(store, TASKS, QueryOptions(
        filter_column="status" if filtered else None,
        filter_value=status if filtered else None,
        order_by="due_date",
        ascending=True,
    ))


def notifications_query(store, user_id: Optional[str] = None) -> LiveQuery:
    return LiveQuery(store, NOTIFICATIONS, QueryOptions(
        filter_column="user_id" if user_id else None,
        filter_value=user_id,
        order_by="time",
        ascending=False,
    ))


def weather_query(store) -> LiveQuery:
    return LiveQuery(store, WEATHER_DATA, QueryOptions(order_by="recorded_at", ascending=False, limit=1))


def forecast_query(store) -> LiveQuery:
    return LiveQuery(store, WEATHER_FORECAST)


def system_status_query(store) -> LiveQuery:
    return LiveQuery(store, SYSTEM_STATUS)


def diagnostics_query(store) -> LiveQuery:
    return LiveQuery(store, DIAGNOSTIC_RESULTS, QueryOptions(order_by="timestamp", ascending=False))


def maintenance_query(store) -> LiveQuery:
    return LiveQuery(store, MAINTENANCE_TASKS)


def soil_data_query(store, field_id: Optional[str] = None) -> LiveQuery:
    return LiveQuery(store, SOIL_DATA, QueryOptions(
        filter_column="field_id" if field_id else None,
        filter_value=field_id,
        order_by="recorded_at",
        ascending=False,
        limit=1 if field_id else None,
    ))


def crop_history_query(store, field_id: Optional[str] = None) -> LiveQuery:
    return LiveQuery(store, CROP_HISTORY, QueryOptions(
        filter_column="field_id" if field_id else None,
        filter_value=field_id,
        order_by="year",
        ascending=False,
    ))
