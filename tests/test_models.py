from datetime import datetime

import pytest

from datalayer.errors import InvalidRecordError
from datalayer.models import (
    CropHistoryEntry, Field, Notification, Task, User, build_record, normalize_changes, read_record,
)


def test_camel_case_payload_is_accepted():
    field = build_record(Field, {
        "name": "Test Field", "size": 5, "location": "X", "cropType": "Corn", "status": "healthy",
        "soilMoisture": 50, "sunlight": 50, "growthStage": "Early",
    })
    assert field.crop_type == "Corn"
    assert field.soil_moisture == 50
    assert field.id
    assert isinstance(field.created_at, datetime)


def test_stored_document_uses_snake_case_columns():
    document = build_record(Task, {"title": "Weed", "fieldName": "North", "assignedToName": "Jane"}).to_document()
    assert document["field_name"] == "North"
    assert document["status"] == "pending"
    assert "fieldName" not in document


def test_keyword_columns_are_stored_without_underscore():
    entry = CropHistoryEntry.model_validate({"year": "2023", "crop": "Corn", "yield": 180.5})
    assert entry.yield_ == 180.5
    assert entry.to_document()["yield"] == 180.5
    assert normalize_changes(CropHistoryEntry, {"yield": 190}) == {"yield": 190.0}


@pytest.mark.parametrize("payload", [
    {"name": "A", "email": "a@farm.com", "role": "admin"},
    {"name": "A", "email": "a@farm.com", "role": "worker", "status": "away"},
    {"email": "a@farm.com", "role": "worker"},
])
def test_invalid_user_payloads(payload):
    with pytest.raises(InvalidRecordError):
        build_record(User, payload)


def test_notification_defaults_to_unread():
    notification = build_record(Notification, {"title": "Hi", "message": "There", "type": "info"})
    assert notification.read is False


def test_normalize_changes_maps_aliases_and_stamps_updated_at():
    changes = normalize_changes(Task, {"status": "in-progress", "assignedToName": "Sam"})
    assert changes["status"] == "in-progress"
    assert changes["assigned_to_name"] == "Sam"
    assert isinstance(changes["updated_at"], datetime)


def test_normalize_changes_leaves_tables_without_updated_at_alone():
    assert normalize_changes(Notification, {"read": True}) == {"read": True}


def test_normalize_changes_rejects_id_and_unknown_columns():
    with pytest.raises(InvalidRecordError):
        normalize_changes(User, {"id": "other"})
    with pytest.raises(InvalidRecordError):
        normalize_changes(User, {"nickname": "JJ"})


def test_normalize_changes_validates_values():
    with pytest.raises(InvalidRecordError):
        normalize_changes(Task, {"priority": "urgent"})
    with pytest.raises(InvalidRecordError):
        normalize_changes(Field, {"size": 0})


def test_created_columns_share_one_timestamp():
    task = build_record(Task, {"title": "Weed", "fieldName": "North", "assignedToName": "Jane"})
    assert task.created_at is not None
    assert task.created_at == task.updated_at


def test_build_record_keeps_given_id_and_timestamps():
    user = build_record(User, {"id": "u7", "name": "A", "email": "a@farm.com", "role": "worker",
                               "dateAdded": "2024-01-01T00:00:00+00:00"})
    assert user.id == "u7"
    assert user.date_added.year == 2024


def test_reading_a_row_generates_nothing():
    row = {"name": "Bare Field", "location": "West", "size": 3, "crop_type": "Oats",
           "soil_moisture": 40, "sunlight": 60, "growth_stage": "Early"}
    first = read_record(Field, row)
    assert first.id is None
    assert first.created_at is None
    assert first.updated_at is None
    assert read_record(Field, row) == first


def test_reading_an_invalid_row_raises_invalid_record():
    with pytest.raises(InvalidRecordError):
        read_record(User, {"id": "x", "name": "A", "email": "a@farm.com", "role": "admin"})
