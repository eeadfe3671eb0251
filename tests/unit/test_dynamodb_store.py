"""Unit tests for DynamoDBStatusStore.

All boto3 DynamoDB calls are mocked to ensure tests are isolated and fast.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from eksup.adapters.dynamodb_store import DynamoDBStatusStore
from eksup.core.exceptions import StoreError
from eksup.core.models import UpgradePhase, UpgradeStatus


def _client_error(code: str = "ProvisionedThroughputExceededException") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "slow down"}}, "GetItem")


class TestDynamoDBStatusStoreInit:
    """Tests for DynamoDBStatusStore initialization."""

    @patch("eksup.adapters.dynamodb_store.boto3")
    def test_init_success(self, mock_boto3: MagicMock) -> None:
        """Test the table resource is created in the configured region."""
        mock_dynamodb = MagicMock()
        mock_table = MagicMock()
        mock_dynamodb.Table.return_value = mock_table
        mock_boto3.resource.return_value = mock_dynamodb

        store = DynamoDBStatusStore(table_name="eksup-upgrade-status", region="eu-west-1")

        mock_boto3.resource.assert_called_once_with("dynamodb", region_name="eu-west-1")
        mock_dynamodb.Table.assert_called_once_with("eksup-upgrade-status")
        assert store.table == mock_table

    @patch("eksup.adapters.dynamodb_store.boto3")
    def test_init_failure_raises_store_error(self, mock_boto3: MagicMock) -> None:
        """Test initialization failure raises StoreError."""
        mock_boto3.resource.side_effect = _client_error("ResourceNotFoundException")

        with pytest.raises(StoreError, match="Failed to initialize DynamoDB store"):
            DynamoDBStatusStore(table_name="missing")


class TestDynamoDBStatusStoreGet:
    """Tests for get."""

    @pytest.mark.asyncio
    async def test_get_existing(self) -> None:
        """Test a stored JSON document is parsed into UpgradeStatus."""
        table = MagicMock()
        stored = UpgradeStatus(phase=UpgradePhase.UPGRADING_ADDONS, current_version="1.33")
        table.get_item.return_value = {
            "Item": {"request_id": "req-1", "status": stored.model_dump_json()}
        }

        status = await DynamoDBStatusStore("t", table=table).get("req-1")

        table.get_item.assert_called_once_with(Key={"request_id": "req-1"}, ConsistentRead=True)
        assert status == stored

    @pytest.mark.asyncio
    async def test_get_missing(self) -> None:
        """Test a missing item returns None."""
        table = MagicMock()
        table.get_item.return_value = {}

        assert await DynamoDBStatusStore("t", table=table).get("req-1") is None

    @pytest.mark.asyncio
    async def test_get_client_error(self) -> None:
        """Test DynamoDB errors become StoreError."""
        table = MagicMock()
        table.get_item.side_effect = _client_error()

        with pytest.raises(StoreError, match="Failed to get status for req-1"):
            await DynamoDBStatusStore("t", table=table).get("req-1")

    @pytest.mark.asyncio
    async def test_get_corrupt_document(self) -> None:
        """Test an unparseable document becomes StoreError."""
        table = MagicMock()
        table.get_item.return_value = {"Item": {"request_id": "req-1", "status": "{not json"}}

        with pytest.raises(StoreError, match="Corrupt status"):
            await DynamoDBStatusStore("t", table=table).get("req-1")


class TestDynamoDBStatusStorePatch:
    """Tests for patch."""

    @pytest.mark.asyncio
    async def test_patch_writes_document_and_phase(self) -> None:
        """Test the full document and phase are written in one update."""
        table = MagicMock()
        status = UpgradeStatus(phase=UpgradePhase.PLANNING)

        await DynamoDBStatusStore("t", table=table).patch("req-1", status)

        kwargs = table.update_item.call_args.kwargs
        assert kwargs["Key"] == {"request_id": "req-1"}
        values = kwargs["ExpressionAttributeValues"]
        assert values[":phase"] == "Planning"
        assert json.loads(values[":status"])["phase"] == "Planning"
        assert kwargs["ExpressionAttributeNames"]["#updated"] == "last_updated"

    @pytest.mark.asyncio
    async def test_patch_client_error(self) -> None:
        """Test write failures become StoreError."""
        table = MagicMock()
        table.update_item.side_effect = _client_error()

        with pytest.raises(StoreError):
            await DynamoDBStatusStore("t", table=table).patch("req-1", UpgradeStatus())


class TestDynamoDBStatusStoreDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_existing(self) -> None:
        """Test deleting an existing item returns True."""
        table = MagicMock()
        table.delete_item.return_value = {"Attributes": {"request_id": "req-1"}}

        assert await DynamoDBStatusStore("t", table=table).delete("req-1") is True
        table.delete_item.assert_called_once_with(
            Key={"request_id": "req-1"}, ReturnValues="ALL_OLD"
        )

    @pytest.mark.asyncio
    async def test_delete_missing(self) -> None:
        """Test deleting a missing item returns False."""
        table = MagicMock()
        table.delete_item.return_value = {}

        assert await DynamoDBStatusStore("t", table=table).delete("req-1") is False
