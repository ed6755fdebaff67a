"""
DynamoDB access layer.

A Store wraps one boto3 DynamoDB resource plus the table names, and is passed
explicitly to every service that reads or writes platform data. Handlers share
one Store per Lambda container through get_store().
"""
from decimal import Decimal
from typing import List, Dict, Any, Optional

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import config
from .logging import logger


# Logical table names
PROFILES = 'profiles'
TASKS = 'tasks'
TASK_CATEGORIES = 'task_categories'
USER_TASKS = 'user_tasks'
SUBMISSIONS = 'task_submissions'
REWARDS = 'rewards'
USER_REWARDS = 'user_rewards'
REFERRALS = 'referrals'
REFERRED_USERS = 'referred_users'
CONNECTED_SERVICES = 'connected_services'


def default_table_names() -> Dict[str, str]:
    """Physical table names from configuration."""
    return {
        PROFILES: config.PROFILES_TABLE,
        TASKS: config.TASKS_TABLE,
        TASK_CATEGORIES: config.TASK_CATEGORIES_TABLE,
        USER_TASKS: config.USER_TASKS_TABLE,
        SUBMISSIONS: config.SUBMISSIONS_TABLE,
        REWARDS: config.REWARDS_TABLE,
        USER_REWARDS: config.USER_REWARDS_TABLE,
        REFERRALS: config.REFERRALS_TABLE,
        REFERRED_USERS: config.REFERRED_USERS_TABLE,
        CONNECTED_SERVICES: config.CONNECTED_SERVICES_TABLE,
    }


# Key schema and secondary indexes for every table (all attributes are strings)
TABLE_SCHEMAS = {
    PROFILES: {'hash': 'userId'},
    TASKS: {'hash': 'taskId'},
    TASK_CATEGORIES: {'hash': 'categoryId'},
    # Composite key: at most one user task per (user, task)
    USER_TASKS: {
        'hash': 'userId',
        'range': 'taskId',
        'indexes': {'UserTaskIdIndex': 'userTaskId', 'TaskIdIndex': 'taskId'},
    },
    SUBMISSIONS: {
        'hash': 'submissionId',
        'indexes': {'TaskIdIndex': 'taskId', 'UserTaskIdIndex': 'userTaskId'},
    },
    REWARDS: {'hash': 'rewardId'},
    USER_REWARDS: {'hash': 'userRewardId', 'indexes': {'UserIdIndex': 'userId'}},
    REFERRALS: {'hash': 'referralCode', 'indexes': {'ReferrerIdIndex': 'referrerId'}},
    # Keyed by the referred user: a user can be referred only once
    REFERRED_USERS: {'hash': 'referredUserId', 'indexes': {'ReferrerIdIndex': 'referrerId'}},
    CONNECTED_SERVICES: {'hash': 'userId', 'range': 'serviceName'},
}


class TransactionCanceled(Exception):
    """A condition in a TransactWriteItems call failed; nothing was written."""

    def __init__(self, reasons: Optional[List[Dict[str, Any]]] = None):
        super().__init__('Transaction cancelled')
        self.reasons = reasons or []


_serializer = TypeSerializer()


def from_dynamo(value: Any) -> Any:
    """Convert DynamoDB Decimals back to int/float, recursively."""
    if isinstance(value, Decimal):
        if value % 1 == 0:
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def serialize(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Serialize a plain dict into DynamoDB typed attribute values."""
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


class Store:
    """Handle to the platform's DynamoDB tables."""

    def __init__(self, resource=None, table_names: Optional[Dict[str, str]] = None, client=None):
        self.resource = resource or boto3.resource('dynamodb', region_name=config.AWS_REGION)
        # Low-level client: transaction entries are already typed AttributeValues
        self.client = client or boto3.client('dynamodb', region_name=config.AWS_REGION)
        self.names = default_table_names()
        if table_names:
            self.names.update(table_names)

    def name(self, table: str) -> str:
        return self.names[table]

    def table(self, table: str):
        return self.resource.Table(self.names[table])

    # ---- single-item operations ----

    def get_item(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Get a single item (strongly consistent)."""
        response = self.table(table).get_item(Key=key, ConsistentRead=True)
        item = response.get('Item')
        return from_dynamo(item) if item else None

    def put_item(self, table: str, item: Dict[str, Any]) -> None:
        clean = {k: v for k, v in item.items() if v is not None}
        self.table(table).put_item(Item=clean)

    def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Optional[Dict[str, Any]] = None,
        expression_names: Optional[Dict[str, str]] = None,
        condition: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Update an item and return its new image."""
        params = {
            'Key': key,
            'UpdateExpression': update_expression,
            'ReturnValues': 'ALL_NEW',
        }
        if expression_values:
            params['ExpressionAttributeValues'] = expression_values
        if expression_names:
            params['ExpressionAttributeNames'] = expression_names
        if condition:
            params['ConditionExpression'] = condition

        response = self.table(table).update_item(**params)
        return from_dynamo(response.get('Attributes', {}))

    def delete_item(self, table: str, key: Dict[str, Any]) -> None:
        self.table(table).delete_item(Key=key)

    # ---- multi-item reads ----

    def query(
        self,
        table: str,
        key_condition: Any,
        index_name: Optional[str] = None,
        filter_expression: Optional[Any] = None,
        scan_forward: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Query a table or index, following pagination.

        Args:
            table: Logical table name
            key_condition: Key condition expression
            index_name: Optional GSI name
            filter_expression: Optional filter expression
            scan_forward: True for ascending, False for descending

        Returns:
            List of items matching the query
        """
        params = {
            'KeyConditionExpression': key_condition,
            'ScanIndexForward': scan_forward,
        }
        if index_name:
            params['IndexName'] = index_name
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression

        items = []
        while True:
            response = self.table(table).query(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            params['ExclusiveStartKey'] = last_key
        return [from_dynamo(item) for item in items]

    def scan(self, table: str, filter_expression: Optional[Any] = None) -> List[Dict[str, Any]]:
        """Scan a whole table, following pagination."""
        params = {}
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression

        items = []
        while True:
            response = self.table(table).scan(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            params['ExclusiveStartKey'] = last_key
        return [from_dynamo(item) for item in items]

    def count(self, table: str) -> int:
        """Exact item count (scan with Select=COUNT)."""
        params = {'Select': 'COUNT'}
        total = 0
        while True:
            response = self.table(table).scan(**params)
            total += response.get('Count', 0)
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return total
            params['ExclusiveStartKey'] = last_key

    def batch_delete(self, table: str, keys: List[Dict[str, Any]]) -> None:
        """Delete many items; batching (max 25 per request) is handled by boto3."""
        if not keys:
            return
        with self.table(table).batch_writer() as batch:
            for key in keys:
                batch.delete_item(Key=key)

    # ---- transactions ----

    def put(self, table: str, item: Dict[str, Any], condition: str = None,
            names: Dict[str, str] = None, values: Dict[str, Any] = None) -> Dict[str, Any]:
        """Build a Put entry for transact()."""
        entry = {'TableName': self.names[table], 'Item': serialize(item)}
        return {'Put': _with_expressions(entry, condition, names, values)}

    def update(self, table: str, key: Dict[str, Any], update_expression: str, condition: str = None,
               names: Dict[str, str] = None, values: Dict[str, Any] = None) -> Dict[str, Any]:
        """Build an Update entry for transact()."""
        entry = {
            'TableName': self.names[table],
            'Key': serialize(key),
            'UpdateExpression': update_expression,
        }
        return {'Update': _with_expressions(entry, condition, names, values)}

    def condition_check(self, table: str, key: Dict[str, Any], condition: str,
                        names: Dict[str, str] = None, values: Dict[str, Any] = None) -> Dict[str, Any]:
        """Build a ConditionCheck entry for transact()."""
        entry = {'TableName': self.names[table], 'Key': serialize(key)}
        return {'ConditionCheck': _with_expressions(entry, condition, names, values)}

    def transact(self, items: List[Dict[str, Any]]) -> None:
        """
        Run a TransactWriteItems call: every entry is applied or none is.

        Raises:
            TransactionCanceled: when any condition expression fails
        """
        try:
            self.client.transact_write_items(TransactItems=items)
        except ClientError as e:
            if e.response['Error']['Code'] == 'TransactionCanceledException':
                raise TransactionCanceled(e.response.get('CancellationReasons')) from e
            raise


def _with_expressions(entry: Dict[str, Any], condition: Optional[str],
                      names: Optional[Dict[str, str]], values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if condition:
        entry['ConditionExpression'] = condition
    if names:
        entry['ExpressionAttributeNames'] = names
    if values:
        entry['ExpressionAttributeValues'] = {k: _serializer.serialize(v) for k, v in values.items()}
    return entry


def create_tables(resource, table_names: Optional[Dict[str, str]] = None) -> List[str]:
    """
    Create every platform table (on-demand billing). Existing tables are skipped.

    Returns:
        Physical names of the tables that were created
    """
    names = default_table_names()
    if table_names:
        names.update(table_names)

    existing = set(resource.meta.client.list_tables().get('TableNames', []))
    created = []

    for logical, schema in TABLE_SCHEMAS.items():
        physical = names[logical]
        if physical in existing:
            continue

        key_schema = [{'AttributeName': schema['hash'], 'KeyType': 'HASH'}]
        attributes = {schema['hash']}
        if schema.get('range'):
            key_schema.append({'AttributeName': schema['range'], 'KeyType': 'RANGE'})
            attributes.add(schema['range'])

        params = {
            'TableName': physical,
            'KeySchema': key_schema,
            'BillingMode': 'PAY_PER_REQUEST',
        }

        indexes = schema.get('indexes', {})
        if indexes:
            params['GlobalSecondaryIndexes'] = [
                {
                    'IndexName': index_name,
                    'KeySchema': [{'AttributeName': attribute, 'KeyType': 'HASH'}],
                    'Projection': {'ProjectionType': 'ALL'},
                }
                for index_name, attribute in indexes.items()
            ]
            attributes.update(indexes.values())

        params['AttributeDefinitions'] = [
            {'AttributeName': attribute, 'AttributeType': 'S'} for attribute in sorted(attributes)
        ]

        resource.create_table(**params)
        logger.info(f"Created table {physical}")
        created.append(physical)

    return created


_default_store = None


def get_store() -> Store:
    """Get or create the container-wide Store."""
    global _default_store
    if _default_store is None:
        _default_store = Store()
    return _default_store


def reset_store() -> None:
    """Drop the cached Store (used when credentials or endpoints change)."""
    global _default_store
    _default_store = None
