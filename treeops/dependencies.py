"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from treeops.config import get_settings
from treeops.crew import CrewLocationStore, InMemoryCrewLocationStore, RedisCrewLocationStore
from treeops.db import DbClient, InMemoryDbClient, SqlDbClient
from treeops.maps import GoogleMapsClient
from treeops.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_maps_client: GoogleMapsClient | None = None
_crew_store: CrewLocationStore | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so records persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_maps_client() -> GoogleMapsClient:
    global _maps_client
    if _maps_client:
        return _maps_client

    settings = get_settings()
    _maps_client = GoogleMapsClient(
        api_key=settings.google_maps_api_key,
        timeout=settings.maps_request_timeout,
    )
    return _maps_client


def get_crew_location_store() -> CrewLocationStore:
    """
    Return a singleton crew location store shared by all requests.
    """
    global _crew_store
    if _crew_store:
        return _crew_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _crew_store = RedisCrewLocationStore(
            url=settings.redis_url,
            hash_key=settings.crew_location_key,
        )
    else:
        _crew_store = InMemoryCrewLocationStore()
    return _crew_store
