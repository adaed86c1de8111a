# datalayer/errors.py

from typing import Optional


class DataLayerError(Exception):
    """Base class for every failure raised by the data layer."""
    code = "data_layer_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class StoreError(DataLayerError):
    """The backing database rejected or failed a read or write."""
    code = "store_error"


class RecordNotFoundError(DataLayerError):
    """No record matched an id, or a single-row read came back empty."""
    code = "not_found"


class InvalidRecordError(DataLayerError):
    """A create/update payload failed validation or named an unknown column."""
    code = "invalid_record"


class WeatherFetchError(DataLayerError):
    code = "weather_fetch"
