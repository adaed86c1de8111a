# datalayer/models.py

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field as ModelField, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .errors import InvalidRecordError

# Collection (table) names
USERS = "users"
FIELDS = "fields"
TASKS = "tasks"
NOTIFICATIONS = "notifications"
WEATHER_DATA = "weather_data"
WEATHER_FORECAST = "weather_forecast"
SYSTEM_STATUS = "system_status"
DIAGNOSTIC_RESULTS = "diagnostic_results"
MAINTENANCE_TASKS = "maintenance_tasks"
SOIL_DATA = "soil_data"
CROP_HISTORY = "crop_history"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Record(BaseModel):
    """Base for every stored record. Accepts snake_case names and camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None

    # Timestamp columns stamped when a record is created; reads leave missing ones as None
    created_columns: ClassVar[Tuple[str, ...]] = ()

    def to_document(self) -> Dict[str, Any]:
        """Dumps the record with its stored column names."""
        return {storage_name(k): v for k, v in self.model_dump().items()}


def storage_name(field_name: str) -> str:
    # Python keywords are declared with a trailing underscore (yield_)
    return field_name.rstrip("_")


class User(Record):
    created_columns = ("date_added",)

    name: str
    email: str
    role: Literal["owner", "worker", "technician"]
    status: Literal["active", "inactive"] = "active"
    avatar: Optional[str] = None
    permissions: List[str] = []
    date_added: Optional[datetime] = None
    farm_id: Optional[str] = None


class Field(Record):
    created_columns = ("created_at", "updated_at")

    name: str
    location: str
    size: float = ModelField(gt=0)  # acres
    crop_type: str
    status: Literal["healthy", "warning", "critical"] = "healthy"
    soil_moisture: float = ModelField(ge=0, le=100)
    sunlight: float = ModelField(ge=0, le=100)
    growth_stage: str
    planting_date: Optional[str] = None
    harvest_date: Optional[str] = None
    field_image: Optional[str] = None
    farm_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Task(Record):
    created_columns = ("created_at", "updated_at")

    title: str
    description: Optional[str] = None
    field_id: Optional[str] = None
    field_name: str
    assigned_to_id: Optional[str] = None
    assigned_to_name: str
    due_date: Optional[str] = None
    priority: Literal["high", "medium", "low"] = "medium"
    status: Literal["pending", "in-progress", "completed", "cancelled"] = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Notification(Record):
    created_columns = ("time",)

    title: str
    message: str
    time: Optional[datetime] = None
    type: Literal["alert", "task", "info"]
    status: Optional[str] = None
    priority: Optional[str] = None
    read: bool = False
    user_id: Optional[str] = None
    related_id: Optional[str] = None
    related_type: Optional[str] = None


class WeatherSnapshot(Record):
    created_columns = ("recorded_at",)

    temperature: float
    humidity: float
    wind_speed: float
    condition: Literal["sunny", "cloudy", "rainy", "foggy", "snowy"]
    location: str
    recorded_at: Optional[datetime] = None


class ForecastDay(Record):
    created_columns = ("created_at",)

    day: str
    temperature: float
    condition: str
    created_at: Optional[datetime] = None


class SystemStatus(Record):
    created_columns = ("last_checked", "updated_at")

    name: str
    status: Literal["online", "warning", "offline", "maintenance"]
    last_checked: Optional[datetime] = None
    uptime: Optional[str] = None
    details: Optional[str] = None
    updated_at: Optional[datetime] = None


class DiagnosticResult(Record):
    created_columns = ("timestamp",)

    component: str
    status: str
    message: str
    timestamp: Optional[datetime] = None


class MaintenanceTask(Record):
    created_columns = ("created_at", "updated_at")

    title: str
    description: str
    due_date: str
    priority: str
    status: str
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SoilReading(Record):
    created_columns = ("recorded_at",)

    field_id: Optional[str] = None
    type: str
    moisture: float
    ph: float
    nitrogen: Optional[float] = None
    phosphorus: Optional[float] = None
    potassium: Optional[float] = None
    recorded_at: Optional[datetime] = None


class CropHistoryEntry(Record):
    created_columns = ("created_at",)

    field_id: Optional[str] = None
    year: str
    crop: str
    yield_: float = ModelField(alias="yield")
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


COLLECTION_MODELS: Dict[str, Type[Record]] = {
    USERS: User,
    FIELDS: Field,
    TASKS: Task,
    NOTIFICATIONS: Notification,
    WEATHER_DATA: WeatherSnapshot,
    WEATHER_FORECAST: ForecastDay,
    SYSTEM_STATUS: SystemStatus,
    DIAGNOSTIC_RESULTS: DiagnosticResult,
    MAINTENANCE_TASKS: MaintenanceTask,
    SOIL_DATA: SoilReading,
    CROP_HISTORY: CropHistoryEntry,
}


class ChangeEvent(BaseModel):
    """A single notification from a collection's change feed."""
    event: Literal["insert", "update", "delete"]
    table: str
    record: Optional[Dict[str, Any]] = None


def build_record(model: Type[Record], data: Any) -> Record:
    """
    Validates a create payload (dict or model instance) into a new record.
    Fills in the id and creation timestamps the payload leaves out.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        record = model.model_validate(data)
    except ValidationError as e:
        raise InvalidRecordError(f"Invalid {model.__name__}: {e}") from e

    if record.id is None:
        record.id = new_id()
    now = utc_now()
    for name in model.created_columns:
        if getattr(record, name) is None:
            setattr(record, name, now)
    return record


def read_record(model: Type[Record], row: Dict[str, Any]) -> Record:
    """Validates a stored row as-is; nothing is generated on read."""
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise InvalidRecordError(f"Stored row in {model.__name__} is invalid: {e}") from e


def normalize_changes(model: Type[Record], changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validates a partial update against the model, column by column.
    Accepts field names or camelCase aliases and returns stored column names.
    """
    lookup = {}
    for name, info in model.model_fields.items():
        if name == "id":
            continue
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name

    normalized = {}
    for key, value in changes.items():
        name = lookup.get(key)
        if name is None:
            raise InvalidRecordError(f"Unknown column '{key}' for {model.__name__}")
        info = model.model_fields[name]
        annotation = Annotated[(info.annotation, *info.metadata)] if info.metadata else info.annotation
        try:
            normalized[storage_name(name)] = TypeAdapter(annotation).validate_python(value)
        except ValidationError as e:
            raise InvalidRecordError(f"Invalid value for {model.__name__}.{name}: {e}") from e

    if "updated_at" in model.model_fields and "updated_at" not in normalized:
        normalized["updated_at"] = utc_now()
    return normalized
