"""DynamoDB status store."""

from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from eksup.core.exceptions import StoreError
from eksup.core.models import UpgradeStatus
from eksup.interfaces.state_store import StatusStore
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class DynamoDBStatusStore(StatusStore):
    """Adapter for DynamoDB implementing the StatusStore interface.

    Items are keyed by ``request_id``; the status document is stored as a
    JSON string so datetimes and nested records survive unchanged.
    """

    def __init__(self, table_name: str, region: str = "us-east-1", table=None):
        """Initialize DynamoDB store.

        Args:
            table_name: DynamoDB table name
            region: AWS region
            table: Existing boto3 Table resource (optional)
        """
        self.table_name = table_name
        self.region = region

        if table is not None:
            self.table = table
        else:
            try:
                dynamodb = boto3.resource("dynamodb", region_name=region)
                self.table = dynamodb.Table(table_name)
            except (ClientError, BotoCoreError) as e:
                logger.error("dynamodb_store_init_failed", table_name=table_name, error=str(e))
                raise StoreError(f"Failed to initialize DynamoDB store: {e}") from e

        logger.debug("dynamodb_store_initialized", table_name=table_name)

    async def get(self, request_id: str) -> UpgradeStatus | None:
        try:
            response = self.table.get_item(Key={"request_id": request_id}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            logger.error("get_status_failed", request_id=request_id, error=str(e))
            raise StoreError(f"Failed to get status for {request_id}: {e}") from e

        item = response.get("Item")
        if item is None or "status" not in item:
            return None

        try:
            return UpgradeStatus.model_validate_json(item["status"])
        except ValidationError as e:
            raise StoreError(f"Corrupt status for {request_id}: {e}") from e

    async def patch(self, request_id: str, status: UpgradeStatus) -> None:
        try:
            self.table.update_item(
                Key={"request_id": request_id},
                UpdateExpression="SET #status = :status, #phase = :phase, #updated = :updated",
                ExpressionAttributeNames={
                    "#status": "status",
                    "#phase": "phase",
                    "#updated": "last_updated",
                },
                ExpressionAttributeValues={
                    ":status": status.model_dump_json(),
                    ":phase": status.phase.value,
                    ":updated": datetime.now(timezone.utc).isoformat(),
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("patch_status_failed", request_id=request_id, error=str(e))
            raise StoreError(f"Failed to patch status for {request_id}: {e}") from e

        logger.debug("status_patched", request_id=request_id, phase=status.phase.value)

    async def delete(self, request_id: str) -> bool:
        try:
            response = self.table.delete_item(
                Key={"request_id": request_id}, ReturnValues="ALL_OLD"
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("delete_status_failed", request_id=request_id, error=str(e))
            raise StoreError(f"Failed to delete status for {request_id}: {e}") from e
        return "Attributes" in response
