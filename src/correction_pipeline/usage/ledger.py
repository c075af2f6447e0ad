"""Usage ledger: per (user, feature, UTC day) consumption counters stored in DynamoDB.

Each feature has its own table keyed by ``userId`` (partition) and ``date`` (sort). Both counters are
only ever changed with a single ``UpdateItem`` using ``if_not_exists(attr, 0) + 1``, so concurrent
increments from the same user are never lost and no read-modify-write happens in application code.
The ``ttl`` attribute is storage hygiene only; correctness never depends on it.
"""

import logging
import time
from typing import Any, Callable, Mapping

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from correction_pipeline.domain.schemas import Feature, UsageCounts
from correction_pipeline.exceptions import StorageError
from correction_pipeline.storage.dynamo import from_dynamo, paginate
from correction_pipeline.utils.dates import ttl_epoch

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30

_INCREMENT_EXPRESSION = "SET #counter = if_not_exists(#counter, :zero) + :one, #ttl = :ttl"


class UsageLedger:
    """Atomic per-day usage counters for the metered features."""

    def __init__(
        self,
        tables: Mapping[Feature, Any],
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the ledger.

        Args:
            tables: DynamoDB Table resources keyed by feature.
            retention_days: Default number of days a record is kept before TTL removal.
            clock: Source of the current epoch time, used for the TTL.
        """
        missing = [f.value for f in Feature if f not in tables]
        if missing:
            raise ValueError(f"No usage table configured for: {', '.join(missing)}")
        self.tables = dict(tables)
        self.retention_days = retention_days
        self.clock = clock

    def _table(self, feature: Feature):
        return self.tables[Feature(feature)]

    def peek(self, user_id: str, feature: Feature, date: str) -> UsageCounts:
        """Reads today's counters. An absent record means zero usage.

        Args:
            user_id: The user identifier.
            feature: The metered feature.
            date: Calendar day in YYYY-MM-DD format (UTC).

        Returns:
            UsageCounts: The current count and bonus count.
        """
        try:
            response = self._table(feature).get_item(Key={"userId": user_id, "date": date}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read {Feature(feature).value} usage for {date}: {e}")
            raise StorageError(f"Failed to read {Feature(feature).value} usage") from e

        item = from_dynamo(response.get("Item") or {})
        return UsageCounts(count=item.get("count", 0), bonus_count=item.get("bonusCount", 0))

    def increment_usage(
        self, user_id: str, feature: Feature, date: str, retention_days: int | None = None
    ) -> UsageCounts:
        """Atomically adds 1 to today's count, creating the record if absent, and resets its expiry."""
        return self._increment(user_id, feature, date, "count", retention_days)

    def increment_bonus(
        self, user_id: str, feature: Feature, date: str, retention_days: int | None = None
    ) -> UsageCounts:
        """Atomically adds 1 to today's bonus count, creating the record if absent, and resets its expiry."""
        return self._increment(user_id, feature, date, "bonusCount", retention_days)

    def _increment(
        self, user_id: str, feature: Feature, date: str, attribute: str, retention_days: int | None
    ) -> UsageCounts:
        days = self.retention_days if retention_days is None else retention_days
        try:
            response = self._table(feature).update_item(
                Key={"userId": user_id, "date": date},
                UpdateExpression=_INCREMENT_EXPRESSION,
                ExpressionAttributeNames={"#counter": attribute, "#ttl": "ttl"},
                ExpressionAttributeValues={":zero": 0, ":one": 1, ":ttl": ttl_epoch(days, now=self.clock())},
                ReturnValues="ALL_NEW",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to increment {Feature(feature).value} {attribute} for {date}: {e}")
            raise StorageError(f"Failed to record {Feature(feature).value} usage") from e

        item = from_dynamo(response.get("Attributes") or {})
        counts = UsageCounts(count=item.get("count", 0), bonus_count=item.get("bonusCount", 0))
        logger.info(f"{Feature(feature).value} usage for {date} is now count={counts.count} bonus={counts.bonus_count}")
        return counts

    def delete_user_records(self, user_id: str) -> int:
        """Removes every usage record of a user across all features. Used for account erasure.

        Returns:
            int: The number of records deleted.
        """
        deleted = 0
        for feature, table in self.tables.items():
            try:
                items = list(
                    paginate(
                        table.query,
                        KeyConditionExpression=Key("userId").eq(user_id),
                        ProjectionExpression="userId, #date",
                        ExpressionAttributeNames={"#date": "date"},
                    )
                )
                with table.batch_writer() as batch:
                    for item in items:
                        batch.delete_item(Key={"userId": user_id, "date": item["date"]})
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to delete {Feature(feature).value} usage records: {e}")
                raise StorageError(f"Failed to delete {Feature(feature).value} usage records") from e
            logger.info(f"Deleted {len(items)} {Feature(feature).value} usage records")
            deleted += len(items)
        return deleted
