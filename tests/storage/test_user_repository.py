import pytest

from correction_pipeline.domain.schemas import User
from correction_pipeline.exceptions import NotFoundError
from correction_pipeline.storage.user_repository import UserRepository


@pytest.fixture
def repository(users_table):
    return UserRepository(users_table)


def test_create_if_absent(repository):
    user = User(user_id="user-1", email="taro@example.com", display_name="taro", created_at=1000)

    assert repository.create_if_absent(user) is True

    stored = repository.get("user-1")
    assert stored.email == "taro@example.com"
    assert stored.plan == "free"


def test_create_if_absent_never_overwrites(repository, users_table):
    users_table.put_item(Item={"userId": "user-1", "email": "taro@example.com", "plan": "premium", "createdAt": 1})

    created = repository.create_if_absent(User(user_id="user-1", email="new@example.com", created_at=2))

    assert created is False
    assert repository.get("user-1").plan == "premium"


def test_get_missing_user(repository):
    assert repository.get("nobody") is None


def test_update_fields(repository):
    repository.create_if_absent(User(user_id="user-1", email="taro@example.com", created_at=1000))

    user = repository.update_fields("user-1", {"displayName": "Taro", "targetLanguage": "french", "updatedAt": 5})

    assert user.display_name == "Taro"
    assert user.target_language == "french"
    assert user.updated_at == 5


def test_update_fields_on_missing_user(repository):
    with pytest.raises(NotFoundError):
        repository.update_fields("nobody", {"displayName": "Ghost"})


def test_delete(repository):
    repository.create_if_absent(User(user_id="user-1", email="taro@example.com", created_at=1000))

    repository.delete("user-1")

    assert repository.get("user-1") is None
