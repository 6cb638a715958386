"""Scoring engine exceptions."""


class ScoringError(Exception):
    """Base class for errors surfaced to the caller of the scoring engine."""


class UserNotFoundError(ScoringError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class PublishEventNotFoundError(ScoringError):
    def __init__(self, user_id: int, post_id: int):
        super().__init__(f"No publish event for user {user_id}, post {post_id}")
        self.user_id = user_id
        self.post_id = post_id


class DuplicatePublishEventError(ScoringError):
    """The post has already been scored; scoring it again would double-award."""

    def __init__(self, user_id: int, post_id: int):
        super().__init__(f"Post {post_id} of user {user_id} has already been scored")
        self.user_id = user_id
        self.post_id = post_id


class ScoringBusyError(ScoringError):
    """Another scoring run for the same user held the lock for too long."""

    def __init__(self, user_id: int):
        super().__init__(f"Scoring for user {user_id} is busy, retry later")
        self.user_id = user_id
