import logging
from collections.abc import Callable
from datetime import timedelta

from anondrop.config import Settings
from anondrop.lifecycle import Clock, LifecycleManager
from anondrop.metadata import CloudflareKVStore, InMemoryMetadataStore, MetadataStore
from anondrop.repository import RecordRepository
from anondrop.storage import ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)


def build_metadata_store(settings: Settings) -> MetadataStore:
    if settings.metadata_backend == "memory":
        logger.warning("Using in-memory metadata store; records are lost on restart")
        return InMemoryMetadataStore()
    if settings.metadata_backend != "cloudflare":
        raise ValueError(f"unknown metadata backend: {settings.metadata_backend}")
    return CloudflareKVStore(
        account_id=settings.cloudflare_account_id,
        api_token=settings.cloudflare_api_token,
        namespace_id=settings.cloudflare_kv_namespace_id,
        base_url=settings.cloudflare_api_base,
        timeout=settings.adapter_timeout_seconds,
    )


def build_object_store(settings: Settings) -> ObjectStore:
    return S3ObjectStore(
        bucket=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint_url,
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        region=settings.r2_region,
        connect_timeout=settings.adapter_timeout_seconds,
        read_timeout=settings.adapter_timeout_seconds,
        max_attempts=settings.s3_max_attempts,
    )


def build_manager(
    settings: Settings,
    *,
    metadata_store: MetadataStore | None = None,
    object_store: ObjectStore | None = None,
    clock: Clock | None = None,
) -> tuple[LifecycleManager, list[Callable[[], None]]]:
    """Wire adapters into a LifecycleManager; also returns close hooks for adapters built here."""
    closers: list[Callable[[], None]] = []
    if metadata_store is None:
        metadata_store = build_metadata_store(settings)
        if isinstance(metadata_store, CloudflareKVStore):
            closers.append(metadata_store.close)
    if object_store is None:
        object_store = build_object_store(settings)

    manager = LifecycleManager(
        RecordRepository(metadata_store),
        object_store,
        object_ttl=timedelta(seconds=settings.object_ttl_seconds),
        signed_url_ttl=settings.signed_url_ttl_seconds,
        clock=clock,
    )
    return manager, closers
