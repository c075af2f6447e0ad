"""DynamoDB adapter for review cards."""

import logging
from typing import Any, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from correction_pipeline.domain.schemas import ReviewCard
from correction_pipeline.exceptions import StorageError
from correction_pipeline.storage.dynamo import from_dynamo, paginate

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class ReviewCardRepository:
    """Review cards table (partition key ``cardId``) with a ``userId`` index."""

    def __init__(self, table: Any, user_index: str = "userId-index"):
        self.table = table
        self.user_index = user_index

    def put(self, card: ReviewCard) -> None:
        try:
            self.table.put_item(Item=card.to_item())
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to store review card {card.card_id}: {e}")
            raise StorageError("Failed to store review card") from e

    def get(self, card_id: str) -> Optional[ReviewCard]:
        try:
            item = self.table.get_item(Key={"cardId": card_id}).get("Item")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read review card {card_id}: {e}")
            raise StorageError("Failed to read review card") from e
        return ReviewCard.model_validate(from_dynamo(item)) if item else None

    def list_for_user(
        self, user_id: str, tag: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT
    ) -> List[ReviewCard]:
        """Lists a user's cards, newest first, optionally only those carrying tag."""
        query_args = {
            "IndexName": self.user_index,
            "KeyConditionExpression": Key("userId").eq(user_id),
            "Limit": limit,
            "ScanIndexForward": False,
        }
        if tag:
            query_args["FilterExpression"] = Attr("tags").contains(tag)
        try:
            response = self.table.query(**query_args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list review cards: {e}")
            raise StorageError("Failed to list review cards") from e
        return [ReviewCard.model_validate(from_dynamo(item)) for item in response.get("Items", [])]

    def delete(self, card_id: str) -> None:
        try:
            self.table.delete_item(Key={"cardId": card_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete review card {card_id}: {e}")
            raise StorageError("Failed to delete review card") from e

    def delete_for_user(self, user_id: str, diary_id: Optional[str] = None) -> int:
        """Deletes a user's cards, or only those built from diary_id.

        Returns:
            int: The number of cards deleted.
        """
        query_args = {"IndexName": self.user_index, "KeyConditionExpression": Key("userId").eq(user_id)}
        if diary_id:
            query_args["FilterExpression"] = Attr("diaryId").eq(diary_id)
        try:
            items = list(paginate(self.table.query, **query_args))
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={"cardId": item["cardId"]})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete review cards: {e}")
            raise StorageError("Failed to delete review cards") from e
        logger.info(f"Deleted {len(items)} review cards")
        return len(items)
