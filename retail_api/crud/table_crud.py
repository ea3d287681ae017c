from typing import List, Optional, Type, TypeVar

from azure.core import MatchConditions
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient
from pydantic import ValidationError

from retail_api.exceptions import (
    DuplicateKeyError,
    NotFoundError,
    PreconditionFailedError,
    StorageError,
)
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.base import FORCE_ETAG, TableEntityModel

logger = get_child_logger("crud.table")

EntityT = TypeVar("EntityT", bound=TableEntityModel)


def _storage_error(action: str, e: Exception) -> StorageError:
    if isinstance(e, HttpResponseError):
        return StorageError(
            f"Table storage error during {action}: Status Code {e.status_code}, Message: {e.message}",
            original_exception=e,
        )
    return StorageError(
        "An unexpected error occurred during table operation.",
        original_exception=e,
    )


async def list_entities(
    table_client: TableClient, model: Type[EntityT]
) -> List[EntityT]:
    """
    Retrieve every entity in the table. Order is whatever the service returns.
    """
    with tracer.start_as_current_span("list_entities") as span:
        span.set_attribute("table", table_client.table_name)

        logger.info("Listing entities", extra={"table": table_client.table_name})

        try:
            items = []
            async for entity in table_client.list_entities():
                try:
                    items.append(model.from_entity(entity))
                except ValidationError as e:
                    logger.debug(f"Skipping invalid entity: {e.errors()}")
                    continue

            span.set_attribute("entities.count", len(items))
            logger.info(
                f"Retrieved {len(items)} entities",
                extra={"table": table_client.table_name, "count": len(items)},
            )
            return items
        except ResourceNotFoundError:
            # Table not provisioned yet
            logger.warning("Table not found", extra={"table": table_client.table_name})
            return []
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)

            logger.error(
                "Error during entity listing",
                extra={"table": table_client.table_name, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise _storage_error("listing", e) from e


async def get_entity(
    table_client: TableClient,
    model: Type[EntityT],
    partition_key: str,
    row_key: str,
) -> Optional[EntityT]:
    """
    Retrieve a single entity.

    Returns:
        The entity, or None when the table service reports it missing

    Raises:
        StorageError: For any other failure
    """
    with tracer.start_as_current_span("get_entity") as span:
        span.set_attribute("table", table_client.table_name)
        span.set_attribute("entity.partition_key", partition_key)
        span.set_attribute("entity.row_key", row_key)

        try:
            entity = await table_client.get_entity(
                partition_key=partition_key, row_key=row_key
            )
            return model.from_entity(entity)
        except ResourceNotFoundError:
            logger.info(
                "Entity not found",
                extra={
                    "table": table_client.table_name,
                    "partition_key": partition_key,
                    "row_key": row_key,
                },
            )
            return None
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)

            logger.error(
                "Error retrieving entity",
                extra={
                    "table": table_client.table_name,
                    "partition_key": partition_key,
                    "row_key": row_key,
                },
                exc_info=True,
            )
            raise _storage_error("retrieval", e) from e


async def add_entity(table_client: TableClient, entity: EntityT) -> EntityT:
    """
    Insert a new entity.

    Returns:
        The entity carrying the ETag assigned by the service

    Raises:
        DuplicateKeyError: If PartitionKey/RowKey is already taken
        StorageError: For any other failure
    """
    with tracer.start_as_current_span("add_entity") as span:
        span.set_attribute("table", table_client.table_name)
        span.set_attribute("entity.partition_key", entity.partition_key)
        span.set_attribute("entity.row_key", entity.row_key)

        logger.info(
            "Adding entity",
            extra={
                "table": table_client.table_name,
                "partition_key": entity.partition_key,
                "row_key": entity.row_key,
            },
        )

        try:
            metadata = await table_client.create_entity(entity=entity.to_entity())
        except ResourceExistsError as e:
            span.set_attribute("error", True)
            logger.warning(
                "Entity already exists",
                extra={"table": table_client.table_name, "row_key": entity.row_key},
            )
            raise DuplicateKeyError(
                f"Entity '{entity.partition_key}/{entity.row_key}' already exists in table '{table_client.table_name}'"
            ) from e
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            logger.error(
                "Error adding entity",
                extra={"table": table_client.table_name, "row_key": entity.row_key},
                exc_info=True,
            )
            raise _storage_error("insert", e) from e

        entity.etag = (metadata or {}).get("etag")
        return entity


async def update_entity(
    table_client: TableClient, entity: EntityT, force: bool = False
) -> EntityT:
    """
    Replace all properties of an existing entity.

    Args:
        table_client: Table client for the entity's kind
        entity: The entity as last read, carrying its ETag
        force: Replace regardless of the stored version

    Returns:
        The entity carrying its new ETag

    Raises:
        PreconditionFailedError: If the ETag no longer matches (concurrent update)
        NotFoundError: If the entity doesn't exist
        StorageError: For any other failure
    """
    force = force or entity.etag == FORCE_ETAG
    if not force and not entity.etag:
        raise ValueError("An ETag is required to update an entity.")

    if force:
        match_kwargs = {"match_condition": MatchConditions.Unconditionally}
    else:
        match_kwargs = {
            "etag": entity.etag,
            "match_condition": MatchConditions.IfNotModified,
        }

    with tracer.start_as_current_span("update_entity") as span:
        span.set_attribute("table", table_client.table_name)
        span.set_attribute("entity.row_key", entity.row_key)
        span.set_attribute("force", force)

        try:
            metadata = await table_client.update_entity(
                entity=entity.to_entity(), mode=UpdateMode.REPLACE, **match_kwargs
            )
        except ResourceModifiedError as e:
            span.set_attribute("error", True)
            logger.warning(
                "ETag mismatch on update",
                extra={"table": table_client.table_name, "row_key": entity.row_key},
            )
            raise PreconditionFailedError(
                f"Entity '{entity.partition_key}/{entity.row_key}' has been modified since last retrieved (ETag mismatch)."
            ) from e
        except ResourceNotFoundError as e:
            raise NotFoundError(
                f"Entity '{entity.partition_key}/{entity.row_key}' not found in table '{table_client.table_name}'"
            ) from e
        except HttpResponseError as e:
            if e.status_code == 412:  # Precondition Failed (ETag mismatch)
                raise PreconditionFailedError(
                    f"Entity '{entity.partition_key}/{entity.row_key}' has been modified since last retrieved (ETag mismatch)."
                ) from e
            logger.error(
                f"Table storage error during update: Status Code {e.status_code}, Message: {e.message}",
                exc_info=True,
            )
            raise _storage_error("update", e) from e
        except Exception as e:
            logger.error(f"Unexpected error during entity update: {e}", exc_info=True)
            raise _storage_error("update", e) from e

        entity.etag = (metadata or {}).get("etag")
        return entity


async def delete_entity(
    table_client: TableClient, partition_key: str, row_key: str
) -> None:
    """
    Delete an entity. Deleting an entity that does not exist succeeds.

    Raises:
        StorageError: If the table service fails
    """
    try:
        await table_client.delete_entity(partition_key=partition_key, row_key=row_key)
        logger.info(
            "Entity deleted",
            extra={
                "table": table_client.table_name,
                "partition_key": partition_key,
                "row_key": row_key,
            },
        )
    except ResourceNotFoundError:
        logger.info(
            "Entity already absent",
            extra={"table": table_client.table_name, "row_key": row_key},
        )
    except Exception as e:
        logger.error(f"Unexpected error during entity deletion: {e}", exc_info=True)
        raise _storage_error("deletion", e) from e
