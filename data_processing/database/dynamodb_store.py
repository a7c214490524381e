"""
DynamoDB-backed record store.
"""

import logging
from decimal import DecimalException
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from data_processing.aws import create_resource
from data_processing.config import AWSConfig
from data_processing.database.store import RecordStore
from data_processing.errors import PersistenceError
from data_processing.ingestion.models import CanonicalRecord, RecordPatch

logger = logging.getLogger(__name__)

# DecimalException and TypeError come from the item serializer before any request is sent
STORE_ERRORS = (ClientError, BotoCoreError, DecimalException, TypeError)


def build_update_expression(patch: RecordPatch) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    """Translate a validated patch into a SET expression with placeholders."""
    parts = []
    names = {}
    values = {}

    for index, (field_name, value) in enumerate(patch.changes().items()):
        placeholder = f"#attr{index}"
        value_placeholder = f":val{index}"
        parts.append(f"{placeholder} = {value_placeholder}")
        names[placeholder] = field_name
        values[value_placeholder] = value

    return f"SET {', '.join(parts)}", names, values


class DynamoDBRecordStore(RecordStore):
    """Stores records in a table with partition key `id` and sort key `timestamp`."""

    def __init__(self, table: Any):
        self.table = table

    @classmethod
    def from_config(cls, aws_config: AWSConfig, table_name: str) -> "DynamoDBRecordStore":
        dynamodb = create_resource('dynamodb', aws_config)
        return cls(dynamodb.Table(table_name))

    def put_record(self, record: CanonicalRecord) -> None:
        try:
            self.table.put_item(Item=record.to_item())
            logger.debug(f"Item written to DynamoDB: {record.id}/{record.timestamp}")
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to write record {record.id}: {e}") from e

    def get_record(self, record_id: str, timestamp: int) -> Optional[CanonicalRecord]:
        try:
            result = self.table.get_item(Key={'id': record_id, 'timestamp': timestamp})
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to read record {record_id}: {e}") from e

        item = result.get('Item')
        return CanonicalRecord.from_item(item) if item else None

    def query_by_id(self, record_id: str) -> List[CanonicalRecord]:
        items = []
        query_kwargs = {'KeyConditionExpression': Key('id').eq(record_id)}

        try:
            while True:
                result = self.table.query(**query_kwargs)
                items.extend(result.get('Items', []))
                last_key = result.get('LastEvaluatedKey')
                if not last_key:
                    break
                query_kwargs['ExclusiveStartKey'] = last_key
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to query records for {record_id}: {e}") from e

        return [CanonicalRecord.from_item(item) for item in items]

    def scan(self, limit: int = 100) -> List[CanonicalRecord]:
        try:
            result = self.table.scan(Limit=limit)
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to scan table: {e}") from e

        items = result.get('Items', [])
        logger.info(f"Scan returned {len(items)} items")
        return [CanonicalRecord.from_item(item) for item in items]

    def update_record(self, record_id: str, timestamp: int, patch: RecordPatch) -> Optional[CanonicalRecord]:
        expression, names, values = build_update_expression(patch)

        try:
            result = self.table.update_item(
                Key={'id': record_id, 'timestamp': timestamp},
                UpdateExpression=expression,
                ConditionExpression='attribute_exists(id)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues='ALL_NEW'
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                return None
            raise PersistenceError(f"Failed to update record {record_id}: {e}") from e
        except (BotoCoreError, DecimalException, TypeError) as e:
            raise PersistenceError(f"Failed to update record {record_id}: {e}") from e

        logger.info(f"Item updated: {record_id}")
        return CanonicalRecord.from_item(result['Attributes'])

    def delete_record(self, record_id: str, timestamp: int) -> bool:
        try:
            result = self.table.delete_item(
                Key={'id': record_id, 'timestamp': timestamp},
                ReturnValues='ALL_OLD'
            )
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to delete record {record_id}: {e}") from e

        deleted = bool(result.get('Attributes'))
        if deleted:
            logger.info(f"Item deleted: {record_id}")
        return deleted

    def initialize_schema(self) -> None:
        client = self.table.meta.client
        try:
            client.create_table(
                TableName=self.table.name,
                KeySchema=[
                    {'AttributeName': 'id', 'KeyType': 'HASH'},
                    {'AttributeName': 'timestamp', 'KeyType': 'RANGE'},
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'id', 'AttributeType': 'S'},
                    {'AttributeName': 'timestamp', 'AttributeType': 'N'},
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            logger.info(f"DynamoDB table created: {self.table.name}")
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ResourceInUseException':
                logger.info(f"DynamoDB table already exists: {self.table.name}")
                return
            raise PersistenceError(f"Failed to create table {self.table.name}: {e}") from e

    def health_check(self) -> bool:
        try:
            self.table.load()
            return True
        except STORE_ERRORS as e:
            logger.error(f"DynamoDB health check failed: {e}")
            return False
