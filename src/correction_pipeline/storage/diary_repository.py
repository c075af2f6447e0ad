"""DynamoDB adapter for diary records."""

import logging
from typing import Any, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from correction_pipeline.domain.schemas import Correction, Diary
from correction_pipeline.exceptions import ConflictError, NotFoundError, StorageError
from correction_pipeline.storage.dynamo import error_code, from_dynamo, paginate

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class DiaryRepository:
    """Point reads/writes on the diaries table plus the user/date index query."""

    def __init__(self, table: Any, user_date_index: str = "userId-date-index"):
        """Initializes the repository.

        Args:
            table: The DynamoDB Table resource for diaries (partition key ``diaryId``).
            user_date_index: Global secondary index keyed by ``userId`` and ``date``.
        """
        self.table = table
        self.user_date_index = user_date_index

    def get(self, diary_id: str) -> Optional[Diary]:
        """Fetches a diary by id, or None if it does not exist."""
        try:
            item = self.table.get_item(Key={"diaryId": diary_id}).get("Item")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read diary {diary_id}: {e}")
            raise StorageError("Failed to read diary") from e
        return Diary.model_validate(from_dynamo(item)) if item else None

    def get_owned(self, diary_id: str, user_id: str) -> Diary:
        """Fetches a diary owned by user_id.

        Raises:
            NotFoundError: If the diary is missing or owned by someone else; the two are indistinguishable.
        """
        diary = self.get(diary_id)
        if diary is None or diary.user_id != user_id:
            raise NotFoundError("Diary not found")
        return diary

    def create(self, diary: Diary) -> Diary:
        """Stores a new diary. Never overwrites an existing id."""
        try:
            self.table.put_item(Item=diary.to_item(), ConditionExpression=Attr("diaryId").not_exists())
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to create diary {diary.diary_id}: {e}")
            raise StorageError("Failed to create diary") from e
        return diary

    def set_correction(
        self,
        diary_id: str,
        user_id: str,
        corrected_text: str,
        corrections: List[Correction],
        updated_at: int,
        source_text: Optional[str] = None,
    ) -> None:
        """Overwrites the correction result of a diary.

        The write is conditional on the diary still existing and belonging to user_id, so a diary deleted
        while the model was running is not resurrected. When source_text is given, originalText must also
        still equal it.

        Raises:
            NotFoundError: If the diary is gone or owned by someone else.
            ConflictError: If the diary text no longer matches source_text.
        """
        condition = Attr("diaryId").exists() & Attr("userId").eq(user_id)
        if source_text is not None:
            condition = condition & Attr("originalText").eq(source_text)
        try:
            self.table.update_item(
                Key={"diaryId": diary_id},
                UpdateExpression=(
                    "SET correctedText = :correctedText, corrections = :corrections, updatedAt = :updatedAt"
                ),
                ConditionExpression=condition,
                ExpressionAttributeValues={
                    ":correctedText": corrected_text,
                    ":corrections": [c.model_dump() for c in corrections],
                    ":updatedAt": updated_at,
                },
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                current = self.get(diary_id) if source_text is not None else None
                if current is not None and current.user_id == user_id:
                    logger.warning(f"Diary {diary_id} was edited during correction; result discarded")
                    raise ConflictError("Diary was edited during correction") from e
                raise NotFoundError("Diary not found") from e
            logger.error(f"Failed to store correction for diary {diary_id}: {e}")
            raise StorageError("Failed to store correction") from e
        except BotoCoreError as e:
            logger.error(f"Failed to store correction for diary {diary_id}: {e}")
            raise StorageError("Failed to store correction") from e

    def update_text(self, diary: Diary, original_text: str, updated_at: int) -> Diary:
        """Replaces the diary text.

        A changed text clears correctedText and empties corrections, since they were derived from the old
        text. Saving the same text keeps the existing correction result.

        Returns:
            Diary: The diary as stored after the update.
        """
        text_changed = diary.original_text != original_text
        if text_changed:
            update_expression = (
                "SET originalText = :originalText, corrections = :empty, updatedAt = :updatedAt REMOVE correctedText"
            )
            values = {":originalText": original_text, ":empty": [], ":updatedAt": updated_at}
        else:
            update_expression = "SET originalText = :originalText, updatedAt = :updatedAt"
            values = {":originalText": original_text, ":updatedAt": updated_at}

        try:
            response = self.table.update_item(
                Key={"diaryId": diary.diary_id},
                UpdateExpression=update_expression,
                ConditionExpression=Attr("userId").eq(diary.user_id),
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise NotFoundError("Diary not found") from e
            logger.error(f"Failed to update diary {diary.diary_id}: {e}")
            raise StorageError("Failed to update diary") from e
        except BotoCoreError as e:
            logger.error(f"Failed to update diary {diary.diary_id}: {e}")
            raise StorageError("Failed to update diary") from e

        if text_changed:
            logger.info(f"Diary {diary.diary_id} text changed; previous correction cleared")
        return Diary.model_validate(from_dynamo(response["Attributes"]))

    def list_for_user(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[Diary]:
        """Lists a user's diaries, newest date first, optionally within an inclusive date range."""
        condition = Key("userId").eq(user_id)
        if start_date and end_date:
            condition = condition & Key("date").between(start_date, end_date)
        elif start_date:
            condition = condition & Key("date").gte(start_date)
        elif end_date:
            condition = condition & Key("date").lte(end_date)

        try:
            response = self.table.query(
                IndexName=self.user_date_index,
                KeyConditionExpression=condition,
                Limit=limit,
                ScanIndexForward=False,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list diaries: {e}")
            raise StorageError("Failed to list diaries") from e
        return [Diary.model_validate(from_dynamo(item)) for item in response.get("Items", [])]

    def delete(self, diary_id: str) -> None:
        """Deletes a diary by id."""
        try:
            self.table.delete_item(Key={"diaryId": diary_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete diary {diary_id}: {e}")
            raise StorageError("Failed to delete diary") from e

    def delete_all_for_user(self, user_id: str) -> int:
        """Deletes every diary of a user. Used for account erasure.

        Returns:
            int: The number of diaries deleted.
        """
        try:
            items = list(
                paginate(
                    self.table.query,
                    IndexName=self.user_date_index,
                    KeyConditionExpression=Key("userId").eq(user_id),
                )
            )
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={"diaryId": item["diaryId"]})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete diaries: {e}")
            raise StorageError("Failed to delete diaries") from e
        logger.info(f"Deleted {len(items)} diaries")
        return len(items)
