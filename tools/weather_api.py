# tools/weather_api.py

from datetime import datetime
from typing import Dict, List, Optional

import httpx

from datalayer.config import settings
from datalayer.errors import InvalidRecordError, WeatherFetchError
from datalayer.models import WEATHER_DATA, WEATHER_FORECAST, ForecastDay, WeatherSnapshot, build_record, read_record

API_URL = "https://api.open-meteo.com/v1/forecast"


def condition_for_code(code: int) -> str:
    """Maps a WMO weather code onto the dashboard's five conditions."""
    if code in (0, 1):
        return "sunny"
    if code in (45, 48):
        return "foggy"
    if 71 <= code <= 77 or code in (85, 86):
        return "snowy"
    if 51 <= code <= 67 or 80 <= code <= 82 or code >= 95:
        return "rainy"
    return "cloudy"


class WeatherUpdater:
    """Pulls current conditions and a daily forecast, then writes them to the weather collections."""

    def __init__(self, remote, http_client: Optional[httpx.AsyncClient] = None,
                 latitude: Optional[float] = None, longitude: Optional[float] = None,
                 location: Optional[str] = None, forecast_days: Optional[int] = None):
        self.remote = remote
        self.http_client = http_client
        self.latitude = latitude if latitude is not None else settings.weather_latitude
        self.longitude = longitude if longitude is not None else settings.weather_longitude
        self.location = location or settings.weather_location
        self.forecast_days = forecast_days or settings.forecast_days

    async def fetch(self) -> dict:
        print(f"---WEATHER UPDATER: Fetching weather for Lat={self.latitude}, Lon={self.longitude}---")
        params = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
            "daily": "weather_code,temperature_2m_max",
            "timezone": "auto",
            "forecast_days": self.forecast_days,
        }
        try:
            if self.http_client is not None:
                response = await self.http_client.get(API_URL, params=params, timeout=10.0)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(API_URL, params=params, timeout=10.0)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise WeatherFetchError(f"Error fetching weather data: {e}") from e

    def parse(self, data: dict) -> tuple:
        try:
            current = data["current"]
            snapshot = build_record(WeatherSnapshot, {
                "temperature": current["temperature_2m"],
                "humidity": current["relative_humidity_2m"],
                "wind_speed": current["wind_speed_10m"],
                "condition": condition_for_code(current["weather_code"]),
                "location": self.location,
            })
            daily = data["daily"]
            forecast = []
            for i in range(len(daily["time"])):
                day = datetime.strptime(daily["time"][i], "%Y-%m-%d").strftime("%a")
                forecast.append(build_record(ForecastDay, {
                    "day": day,
                    "temperature": daily["temperature_2m_max"][i],
                    "condition": condition_for_code(daily["weather_code"][i]),
                }))
        except (KeyError, IndexError, TypeError, ValueError, InvalidRecordError) as e:
            raise WeatherFetchError(f"Error processing weather data: {e}") from e
        return snapshot, forecast

    async def update(self) -> Dict[str, object]:
        """Inserts one snapshot and replaces the forecast rows. Returns what was written."""
        snapshot, forecast = self.parse(await self.fetch())
        written = await self.remote.insert(WEATHER_DATA, snapshot.to_document())

        await self.remote.delete_all(WEATHER_FORECAST)
        forecast_rows: List[dict] = []
        for day in forecast:
            forecast_rows.append(await self.remote.insert(WEATHER_FORECAST, day.to_document()))

        print(f"---WEATHER UPDATER: Saved {written['condition']} snapshot and {len(forecast_rows)} forecast days---")
        return {"snapshot": read_record(WeatherSnapshot, written),
                "forecast": [read_record(ForecastDay, r) for r in forecast_rows]}
