from fastapi import Request

from retail_api.storage import StorageService


async def get_storage_service(request: Request) -> StorageService:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise RuntimeError("Storage service has not been started.")
    return storage
