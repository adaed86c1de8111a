# api_server.py

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

import httpx
import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from datalayer.config import settings
from datalayer.data_store import DataStore
from datalayer.errors import DataLayerError
from datalayer.remote_store import RemoteStore
from tools.weather_api import WeatherUpdater

REQUIRED_USER_FIELDS = ("name", "email", "role", "status")

ERROR_STATUS = {
    "not_found": 404,
    "no_rows": 404,
    "invalid_record": 400,
    "weather_fetch": 502,
}


def _dump(record) -> dict:
    return record.model_dump(mode="json", by_alias=True)


def create_app(remote_factory: Callable[[], Any] = RemoteStore,
               http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Builds the API around one DataStore that lives for the app's lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        remote = remote_factory()
        store = DataStore(remote)
        await store.start()
        app.state.store = store
        app.state.weather_updater = WeatherUpdater(remote, http_client=http_client)
        try:
            yield
        finally:
            await store.close()
            await remote.close()

    app = FastAPI(title="Farm Dashboard Data API", lifespan=lifespan)

    @app.exception_handler(DataLayerError)
    async def data_layer_error_handler(request: Request, exc: DataLayerError):
        return JSONResponse(status_code=ERROR_STATUS.get(exc.code, 500),
                            content={"error": str(exc), "code": exc.code})

    @app.get("/users")
    async def list_users(request: Request):
        store = request.app.state.store
        await store.wait_for_refresh()
        return [_dump(user) for user in store.users]

    @app.post("/users")
    async def create_user(request: Request, user_data: Dict[str, Any] = Body(...)):
        if any(not user_data.get(key) for key in REQUIRED_USER_FIELDS):
            return JSONResponse(status_code=400, content={"error": "Missing required fields"})
        user = await request.app.state.store.create_user(user_data)
        return JSONResponse(status_code=201, content=_dump(user))

    @app.put("/users")
    async def update_user(request: Request, payload: Dict[str, Any] = Body(...)):
        updates = dict(payload)
        user_id = updates.pop("id", None)
        if not user_id:
            return JSONResponse(status_code=400, content={"error": "User ID is required"})
        user = await request.app.state.store.update_user(user_id, updates)
        return _dump(user)

    @app.delete("/users")
    async def delete_user(request: Request, id: Optional[str] = None):
        if not id:
            return JSONResponse(status_code=400, content={"error": "User ID is required"})
        await request.app.state.store.delete_user(id)
        return {"success": True}

    @app.get("/dashboard")
    async def dashboard(request: Request):
        return request.app.state.store.snapshot()

    @app.post("/notifications/{notification_id}/read")
    async def mark_read(request: Request, notification_id: str):
        notification = await request.app.state.store.mark_notification_as_read(notification_id)
        return _dump(notification)

    @app.post("/notifications/clear")
    async def clear_notifications(request: Request, user_id: str):
        await request.app.state.store.clear_all_notifications(user_id)
        return {"success": True}

    @app.post("/weather/update")
    async def update_weather(request: Request):
        result = await request.app.state.weather_updater.update()
        return {"success": True, "data": _dump(result["snapshot"])}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
