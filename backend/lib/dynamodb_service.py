"""
=============================================================================
DYNAMODB SERVICE - Energy readings table
=============================================================================

Optional cloud storage for meter readings. Enabled with USE_DYNAMODB=true;
otherwise the API keeps readings in a local JSON Lines file.

Table Schema:
-------------
Table: EnergyReadings
- meter_number (String) - Partition Key - Groups readings by meter
- timestamp (String)    - Sort Key      - ISO8601, orders readings in time
- id, user_id (String)
- kwh_consumed, total_cost, cost_per_kwh (Number)
- created_at (String)   - When the record was inserted

Example Item:
{
    "meter_number": "37192835410",
    "timestamp": "2025-11-01T18:00:00+00:00",
    "id": "r-001",
    "user_id": "u-42",
    "kwh_consumed": 2.4,
    "total_cost": 60.0,
    "cost_per_kwh": 25.0,
    "created_at": "2025-11-01T18:00:05+00:00"
}
=============================================================================
"""

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

NUMBER_FIELDS = ('kwh_consumed', 'total_cost', 'cost_per_kwh')


def aws_credentials() -> Dict:
    """Client keyword arguments shared by every boto3 client we create."""
    session_token = os.getenv('AWS_SESSION_TOKEN')
    return {
        'region_name': os.getenv('AWS_REGION', 'us-east-1'),
        'aws_access_key_id': os.getenv('AWS_ACCESS_KEY_ID'),
        'aws_secret_access_key': os.getenv('AWS_SECRET_ACCESS_KEY'),
        'aws_session_token': session_token if session_token else None,
    }


class DynamoDBService:
    """
    Store and query energy readings in DynamoDB.

    Usage:
        db = DynamoDBService()
        db.create_table_if_not_exists()
        db.put_readings_batch([reading.to_dict() for reading in readings])
        items = db.get_readings_for_meter("37192835410")
    """

    def __init__(self, table_name: str = None, dynamodb=None, client=None):
        """
        Args:
            table_name: Optional custom table name. Defaults to
                        DYNAMODB_TABLE_NAME from the environment.
            dynamodb, client: pre-built boto3 resource/client (tests).

        The resource is used for item operations, the client for table
        management (describe_table).
        """
        self.table_name = table_name or os.getenv('DYNAMODB_TABLE_NAME', 'EnergyReadings')
        self.dynamodb = dynamodb or boto3.resource('dynamodb', **aws_credentials())
        self.client = client or boto3.client('dynamodb', **aws_credentials())
        self.table = None

    def _get_table(self):
        if not self.table:
            self.table = self.dynamodb.Table(self.table_name)
        return self.table

    def create_table_if_not_exists(self) -> bool:
        """
        Create the table with meter_number as partition key and timestamp as
        sort key (PAY_PER_REQUEST billing).

        Returns:
            bool: True if the table exists or was created
        """
        try:
            self.client.describe_table(TableName=self.table_name)
            self.table = self.dynamodb.Table(self.table_name)
            logger.info("DynamoDB table '%s' exists", self.table_name)
            return True

        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceNotFoundException':
                logger.error("Error checking table: %s", e)
                return False

        try:
            table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': 'meter_number', 'KeyType': 'HASH'},
                    {'AttributeName': 'timestamp', 'KeyType': 'RANGE'},
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'meter_number', 'AttributeType': 'S'},
                    {'AttributeName': 'timestamp', 'AttributeType': 'S'},
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            table.wait_until_exists()
            self.table = table
            logger.info("Created DynamoDB table '%s'", self.table_name)
            return True

        except ClientError as e:
            logger.error("Failed to create table: %s", e)
            return False

    @staticmethod
    def to_item(reading: Dict) -> Dict:
        """
        DynamoDB requires Decimal for numbers, not float; go through str()
        to avoid binary floating-point noise.
        """
        item = {
            'meter_number': reading['meter_number'],
            'timestamp': reading['timestamp'],
            'id': reading.get('id') or '',
            'user_id': reading.get('user_id') or '',
            'created_at': datetime.now(timezone.utc).isoformat(),
        }
        for name in NUMBER_FIELDS:
            if reading.get(name) is not None:
                item[name] = Decimal(str(reading[name]))
        return item

    @staticmethod
    def from_item(item: Dict) -> Dict:
        row = dict(item)
        for name in NUMBER_FIELDS:
            if row.get(name) is not None:
                row[name] = float(row[name])
        return row

    def put_readings_batch(self, readings: List[Dict]) -> int:
        """
        Store readings with the table's batch writer (up to 25 items per
        request).

        Args:
            readings: list of dicts as produced by EnergyReading.to_dict()

        Returns:
            int: Number of successfully written items
        """
        table = self._get_table()
        success_count = 0
        batch_size = 25

        for i in range(0, len(readings), batch_size):
            batch = readings[i:i + batch_size]
            try:
                with table.batch_writer() as writer:
                    for reading in batch:
                        writer.put_item(Item=self.to_item(reading))
                success_count += len(batch)
            except ClientError as e:
                logger.error("Batch write error: %s", e)

        return success_count

    def get_readings_for_meter(self, meter_number: str) -> List[Dict]:
        """
        Query every reading of one meter, following pagination.

        Raises ClientError so callers can report the source as unavailable.
        """
        table = self._get_table()
        readings = []
        kwargs = {'KeyConditionExpression': Key('meter_number').eq(meter_number)}

        while True:
            response = table.query(**kwargs)
            readings.extend(self.from_item(item) for item in response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return readings
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def get_all_meters(self) -> List[str]:
        """
        Unique meter numbers in the table.

        Uses a Scan, which reads the whole table.
        """
        table = self._get_table()
        meters = set()
        kwargs = {'ProjectionExpression': 'meter_number'}

        try:
            while True:
                response = table.scan(**kwargs)
                meters.update(item['meter_number'] for item in response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    return sorted(meters)
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

        except ClientError as e:
            logger.error("Failed to list meters: %s", e)
            return []
