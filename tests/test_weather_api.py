import httpx
import pytest

from datalayer.errors import WeatherFetchError
from datalayer.models import WEATHER_DATA, WEATHER_FORECAST
from tools.weather_api import WeatherUpdater, condition_for_code

OPEN_METEO_RESPONSE = {
    "current": {"temperature_2m": 21.4, "relative_humidity_2m": 63, "wind_speed_10m": 11.2, "weather_code": 3},
    "daily": {
        "time": ["2024-06-03", "2024-06-04", "2024-06-05"],
        "weather_code": [0, 61, 45],
        "temperature_2m_max": [25.1, 19.8, 17.0],
    },
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("code, condition", [
    (0, "sunny"), (1, "sunny"), (2, "cloudy"), (3, "cloudy"), (45, "foggy"),
    (63, "rainy"), (81, "rainy"), (95, "rainy"), (73, "snowy"), (86, "snowy"),
])
def test_condition_for_code(code, condition):
    assert condition_for_code(code) == condition


async def test_update_writes_snapshot_and_replaces_forecast(remote):
    remote.tables[WEATHER_FORECAST] = [{"id": "old", "day": "Sun", "temperature": 10, "condition": "snowy"}]
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        return httpx.Response(200, json=OPEN_METEO_RESPONSE)

    async with mock_client(handler) as client:
        updater = WeatherUpdater(remote, http_client=client, latitude=10.0, longitude=20.0,
                                 location="Test Farm", forecast_days=3)
        result = await updater.update()

    assert requests[0].url.params["latitude"] == "10.0"
    assert requests[0].url.params["forecast_days"] == "3"

    snapshot = result["snapshot"]
    assert snapshot.condition == "cloudy"
    assert snapshot.location == "Test Farm"
    assert snapshot.id is not None
    assert snapshot.recorded_at is not None
    assert remote.tables[WEATHER_DATA][0]["wind_speed"] == 11.2

    days = [(row["day"], row["condition"]) for row in remote.tables[WEATHER_FORECAST]]
    assert days == [("Mon", "sunny"), ("Tue", "rainy"), ("Wed", "foggy")]


async def test_http_failure_raises_weather_fetch_error(remote):
    async with mock_client(lambda request: httpx.Response(503)) as client:
        updater = WeatherUpdater(remote, http_client=client)
        with pytest.raises(WeatherFetchError):
            await updater.update()
    assert remote.tables[WEATHER_DATA] == []


async def test_malformed_payload_raises_weather_fetch_error(remote):
    async with mock_client(lambda request: httpx.Response(200, json={"daily": {}})) as client:
        updater = WeatherUpdater(remote, http_client=client)
        with pytest.raises(WeatherFetchError):
            await updater.update()


async def test_unusable_values_raise_weather_fetch_error(remote):
    payload = {**OPEN_METEO_RESPONSE, "current": {**OPEN_METEO_RESPONSE["current"], "temperature_2m": "hot"}}
    async with mock_client(lambda request: httpx.Response(200, json=payload)) as client:
        updater = WeatherUpdater(remote, http_client=client)
        with pytest.raises(WeatherFetchError):
            await updater.update()
