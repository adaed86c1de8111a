import asyncio
import sys

from pymongo.errors import OperationFailure, PyMongoError

from datalayer.config import settings
from datalayer.models import USERS
from datalayer.remote_store import RemoteStore

async def check_connection() -> bool:
    print("--- Checking MongoDB Connection ---")
    print(f"Connection String (masked): {settings.final_mongo_uri.split('@')[-1] if '@' in settings.final_mongo_uri else '...local...'}")

    remote = RemoteStore()
    try:
        await remote.ping()
        print("✅ Connection successful!")
    except PyMongoError as e:
        print("❌ Connection failed!")
        print(f"Error: {e}")
        await remote.close()
        return False

    # Change streams (live refresh) need a replica set or sharded cluster
    try:
        stream = await remote.db[USERS].watch()
        await stream.close()
        print("✅ Change streams available, live refresh will work.")
    except OperationFailure as e:
        print("⚠️ Change streams unavailable, the dashboard will only refresh manually.")
        print(f"Error: {e}")
    finally:
        await remote.close()
    return True

if __name__ == "__main__":
    if asyncio.run(check_connection()):
        sys.exit(0)
    else:
        sys.exit(1)
