# datalayer/data_store.py

import asyncio
import inspect
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from .errors import RecordNotFoundError
from .models import (
    COLLECTION_MODELS,
    DIAGNOSTIC_RESULTS,
    FIELDS,
    MAINTENANCE_TASKS,
    NOTIFICATIONS,
    SYSTEM_STATUS,
    TASKS,
    USERS,
    WEATHER_DATA,
    WEATHER_FORECAST,
    ChangeEvent,
    DiagnosticResult,
    Field,
    ForecastDay,
    MaintenanceTask,
    Notification,
    Record,
    SystemStatus,
    Task,
    User,
    WeatherSnapshot,
    build_record,
    normalize_changes,
    read_record,
)
from .query_client import QueryOptions
from .refresh import CoalescedRefresh

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"


class StoreStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


# slice attribute -> (collection, read options)
SLICES: Dict[str, tuple] = {
    "users": (USERS, QueryOptions(order_by="date_added", ascending=False)),
    "fields": (FIELDS, QueryOptions(order_by="name", ascending=True)),
    "tasks": (TASKS, QueryOptions(order_by="due_date", ascending=True)),
    "notifications": (NOTIFICATIONS, QueryOptions(order_by="time", ascending=False)),
    "weather_data": (WEATHER_DATA, QueryOptions(order_by="recorded_at", ascending=False)),
    "weather_forecast": (WEATHER_FORECAST, QueryOptions()),
    "system_status": (SYSTEM_STATUS, QueryOptions()),
    "diagnostic_results": (DIAGNOSTIC_RESULTS, QueryOptions(order_by="timestamp", ascending=False)),
    "maintenance_tasks": (MAINTENANCE_TASKS, QueryOptions()),
}


class DataStore:
    """
    Single source of truth for the dashboard: all nine collections held in memory.

    Any change notification on any collection triggers a full nine-collection
    refresh. Mutations write through to the remote store and never touch the
    in-memory slices; they converge once the change notification is processed.
    """

    def __init__(self, remote):
        self.remote = remote
        self.users: List[User] = []
        self.fields: List[Field] = []
        self.tasks: List[Task] = []
        self.notifications: List[Notification] = []
        self.weather_data: Optional[WeatherSnapshot] = None
        self.weather_forecast: List[ForecastDay] = []
        self.system_status: List[SystemStatus] = []
        self.diagnostic_results: List[DiagnosticResult] = []
        self.maintenance_tasks: List[MaintenanceTask] = []

        self.loading = False
        self.error: Optional[Exception] = None
        self.status = StoreStatus.UNINITIALIZED
        self.refresh_count = 0

        self._subscriptions = []
        self._listeners: List[Callable] = []
        self._refresh = CoalescedRefresh(self._refresh_once)

    # --- Lifecycle ---

    async def start(self) -> "DataStore":
        # Subscribe first so a change landing during the initial read still triggers a refresh
        results = await asyncio.gather(
            *(self.remote.subscribe(collection, self._on_change) for collection, _ in SLICES.values()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                print(f"---DATA STORE: Subscription failed, live updates degraded: {result}---")
            else:
                self._subscriptions.append(result)
        await self.refresh_data()
        print(f"---DATA STORE: Started with {len(self._subscriptions)} live subscriptions---")
        return self

    async def close(self):
        await asyncio.gather(*(s.close() for s in self._subscriptions))
        self._subscriptions = []
        await self._refresh.cancel()
        print("---DATA STORE: Closed---")

    async def __aenter__(self) -> "DataStore":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def live(self) -> bool:
        """True while every collection has a running change subscription."""
        return len(self._subscriptions) == len(SLICES) and all(not s.closed for s in self._subscriptions)

    # --- Refresh ---

    async def refresh_data(self):
        """Re-reads all nine collections. Returns once a refresh started after this call has been applied."""
        await self._refresh()

    async def wait_for_refresh(self):
        """Waits until notification-triggered refreshes have been applied."""
        await self._refresh.wait()

    def _on_change(self, event: ChangeEvent):
        print(f"---DATA STORE: {event.event} on '{event.table}', refreshing---")
        self._refresh.request()

    async def _read_slice(self, name: str):
        collection, options = SLICES[name]
        model = COLLECTION_MODELS[collection]
        if name == "weather_data":
            try:
                row = await self.remote.select_single(collection, **options.model_dump())
            except RecordNotFoundError:
                return None
            return read_record(model, row)
        rows = await self.remote.select(collection, **options.model_dump())
        return [read_record(model, row) for row in rows]

    async def _refresh_once(self):
        self.loading = True
        self.status = StoreStatus.LOADING
        names = list(SLICES)
        results = await asyncio.gather(*(self._read_slice(n) for n in names), return_exceptions=True)

        updates = {}
        first_error = None
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if name == "weather_data":
                    # Commonly empty early on; no snapshot is not a store failure
                    print(f"---DATA STORE: Weather read failed, showing no weather: {result}---")
                    updates[name] = None
                    continue
                print(f"---DATA STORE: Read of '{name}' failed: {result}---")
                if first_error is None:
                    first_error = result
                continue
            updates[name] = result

        # Applied in one step; no await between assignments
        for name, value in updates.items():
            setattr(self, name, value)
        self.error = first_error
        self.status = StoreStatus.ERROR if first_error else StoreStatus.READY
        self.loading = False
        self.refresh_count += 1
        await self._notify_listeners()

    # --- Listeners ---

    def add_listener(self, callback: Callable):
        """Registers a callback run with the store after every applied refresh (sync or async)."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable):
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _notify_listeners(self):
        for callback in list(self._listeners):
            try:
                result = callback(self)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                print(f"---DATA STORE: Listener {getattr(callback, '__name__', callback)} failed: {e}---")

    # --- Generic write-through ---

    async def _create(self, collection: str, data: Any) -> Record:
        model = COLLECTION_MODELS[collection]
        record = build_record(model, data)
        written = await self.remote.insert(collection, record.to_document())
        return read_record(model, written)

    async def _update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Record:
        model = COLLECTION_MODELS[collection]
        written = await self.remote.update(collection, record_id, normalize_changes(model, changes))
        return read_record(model, written)

    async def _delete(self, collection: str, record_id: str) -> bool:
        return await self.remote.delete(collection, record_id)

    async def _get(self, collection: str, record_id: str) -> Record:
        model = COLLECTION_MODELS[collection]
        row = await self.remote.select_single(collection, filter_column="id", filter_value=record_id)
        return read_record(model, row)

    # --- Users ---

    async def create_user(self, user_data: Any) -> User:
        if isinstance(user_data, User):
            user_data = user_data.model_dump()
        user_data = dict(user_data)
        if user_data.get("role") != "owner" and not user_data.get("avatar"):
            user_data["avatar"] = AVATAR_URL.format(seed=quote(str(user_data.get("name", ""))))
        if user_data.get("permissions") is None:
            user_data["permissions"] = []
        return await self._create(USERS, user_data)

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> User:
        return await self._update(USERS, user_id, updates)

    async def delete_user(self, user_id: str) -> bool:
        return await self._delete(USERS, user_id)

    async def get_user_by_id(self, user_id: str) -> User:
        return await self._get(USERS, user_id)

    # --- Fields ---

    async def create_field(self, field_data: Any) -> Field:
        return await self._create(FIELDS, field_data)

    async def update_field(self, field_id: str, updates: Dict[str, Any]) -> Field:
        return await self._update(FIELDS, field_id, updates)

    async def delete_field(self, field_id: str) -> bool:
        return await self._delete(FIELDS, field_id)

    async def get_field_by_id(self, field_id: str) -> Field:
        return await self._get(FIELDS, field_id)

    # --- Tasks ---

    async def create_task(self, task_data: Any) -> Task:
        return await self._create(TASKS, task_data)

    async def update_task(self, task_id: str, updates: Dict[str, Any]) -> Task:
        return await self._update(TASKS, task_id, updates)

    async def delete_task(self, task_id: str) -> bool:
        return await self._delete(TASKS, task_id)

    async def get_task_by_id(self, task_id: str) -> Task:
        return await self._get(TASKS, task_id)

    # --- Notifications ---

    async def create_notification(self, notification_data: Any) -> Notification:
        return await self._create(NOTIFICATIONS, notification_data)

    async def mark_notification_as_read(self, notification_id: str) -> Notification:
        return await self._update(NOTIFICATIONS, notification_id, {"read": True})

    async def clear_all_notifications(self, user_id: str) -> bool:
        await self.remote.update_where(NOTIFICATIONS, "user_id", user_id, {"read": True})
        return True

    # --- Maintenance & system status ---

    async def create_maintenance_task(self, task_data: Any) -> MaintenanceTask:
        return await self._create(MAINTENANCE_TASKS, task_data)

    async def update_maintenance_task(self, task_id: str, updates: Dict[str, Any]) -> MaintenanceTask:
        return await self._update(MAINTENANCE_TASKS, task_id, updates)

    async def delete_maintenance_task(self, task_id: str) -> bool:
        return await self._delete(MAINTENANCE_TASKS, task_id)

    async def update_system_status(self, status_id: str, updates: Dict[str, Any]) -> SystemStatus:
        return await self._update(SYSTEM_STATUS, status_id, updates)

    # --- Derived views over the in-memory slices ---

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)

    def notifications_by_type(self, notification_type: str) -> List[Notification]:
        return [n for n in self.notifications if n.type == notification_type]

    def tasks_for(self, assignee_name: str) -> List[Task]:
        return [t for t in self.tasks if t.assigned_to_name == assignee_name]

    def system_status_summary(self) -> Dict[str, int]:
        counts = Counter(s.status for s in self.system_status)
        summary = {"total": len(self.system_status)}
        for status in ("online", "warning", "offline", "maintenance"):
            summary[status] = counts.get(status, 0)
        return summary

    def field_status_summary(self) -> Dict[str, int]:
        counts = Counter(f.status for f in self.fields)
        return {status: counts.get(status, 0) for status in ("healthy", "warning", "critical")}

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of every slice plus store state, in camelCase."""
        def dump(value):
            if value is None:
                return None
            if isinstance(value, list):
                return [v.model_dump(mode="json", by_alias=True) for v in value]
            return value.model_dump(mode="json", by_alias=True)

        data = {_camel(name): dump(getattr(self, name)) for name in SLICES}
        data.update({
            "loading": self.loading,
            "status": self.status.value,
            "error": str(self.error) if self.error else None,
        })
        return data


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
