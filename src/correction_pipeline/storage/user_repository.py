"""DynamoDB adapter for user records."""

import logging
from typing import Any, Dict, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from correction_pipeline.domain.schemas import User
from correction_pipeline.exceptions import NotFoundError, StorageError
from correction_pipeline.storage.dynamo import error_code, from_dynamo

logger = logging.getLogger(__name__)


class UserRepository:
    """Point reads/writes on the users table (partition key ``userId``)."""

    def __init__(self, table: Any):
        self.table = table

    def get(self, user_id: str) -> Optional[User]:
        """Fetches a user, or None when no record exists yet."""
        try:
            item = self.table.get_item(Key={"userId": user_id}).get("Item")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read user: {e}")
            raise StorageError("Failed to read user") from e
        return User.model_validate(from_dynamo(item)) if item else None

    def create_if_absent(self, user: User) -> bool:
        """Stores a new user without overwriting an existing one.

        Returns:
            bool: True if the record was created, False if the user already existed.
        """
        try:
            self.table.put_item(
                Item=user.model_dump(by_alias=True, exclude_none=True),
                ConditionExpression=Attr("userId").not_exists(),
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                logger.info("User already exists, skipping creation")
                return False
            logger.error(f"Failed to create user: {e}")
            raise StorageError("Failed to create user") from e
        except BotoCoreError as e:
            logger.error(f"Failed to create user: {e}")
            raise StorageError("Failed to create user") from e
        return True

    def update_fields(self, user_id: str, fields: Dict[str, Any]) -> User:
        """Sets the given top-level attributes on an existing user and returns the stored record."""
        names = {f"#f{i}": name for i, name in enumerate(fields)}
        values = {f":v{i}": value for i, value in enumerate(fields.values())}
        assignments = ", ".join(f"#f{i} = :v{i}" for i in range(len(fields)))
        try:
            response = self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=f"SET {assignments}",
                ConditionExpression=Attr("userId").exists(),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise NotFoundError("User not found") from e
            logger.error(f"Failed to update user: {e}")
            raise StorageError("Failed to update user") from e
        except BotoCoreError as e:
            logger.error(f"Failed to update user: {e}")
            raise StorageError("Failed to update user") from e
        return User.model_validate(from_dynamo(response["Attributes"]))

    def delete(self, user_id: str) -> None:
        """Deletes the user record."""
        try:
            self.table.delete_item(Key={"userId": user_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete user: {e}")
            raise StorageError("Failed to delete user") from e
