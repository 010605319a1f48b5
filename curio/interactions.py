"""Concrete optimistic toggles for articles, authors and comments."""
import logging
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .data_models import Comment, InteractionKind
from .errors import ValidationError
from .mutations import MutationState, OptimisticMutation

logger = logging.getLogger("curio.interactions")

LIKE_COUNT = "like_count"
FOLLOWER_COUNT = "follower_count"
COMMENT_LIKE_COUNT = "comment_like_count"


def reported(field: str) -> Callable[[Any], Optional[bool]]:
    """Read the toggled state a like/bookmark endpoint echoes back, if any."""

    def read(body: Any) -> Optional[bool]:
        if isinstance(body, dict) and isinstance(body.get(field), bool):
            return body[field]
        return None

    return read


class InteractionController:
    """Toggle actions wired to the interaction cache and the mutation runner."""

    def __init__(self, api, cache, runner):
        self.api = api
        self.cache = cache
        self.runner = runner

    def _toggle(
        self,
        entity_id: Hashable,
        kind: InteractionKind,
        commit: Callable[[bool], Any],
        messages: Tuple[str, str],
        login_prompt: str,
        counter: Optional[str] = None,
        failure_message: Optional[str] = None,
        server_state: Optional[Callable[[Any], Optional[bool]]] = None,
        seed_count: Optional[Callable[[], int]] = None,
        on_count: Optional[Callable[[int], None]] = None,
    ) -> MutationState:
        # messages: (shown after turning on, shown after turning off)
        # the snapshot is taken in apply(), which only runs once the key is reserved
        snapshot: Dict[str, Any] = {}

        def write(value: bool, count: Optional[int]) -> None:
            self.cache.set(entity_id, kind, value)
            if counter:
                self.cache.set_count(entity_id, counter, count)
                if on_count is not None:
                    on_count(self.cache.get_count(entity_id, counter))

        def moved_to(value: bool) -> Optional[int]:
            if not counter:
                return None
            return snapshot["count"] + (1 if value else -1)

        def apply():
            snapshot["previous"] = self.cache.get(entity_id, kind)
            snapshot["target"] = not snapshot["previous"]
            if counter:
                snapshot["count"] = seed_count() if seed_count else self.cache.get_count(entity_id, counter)
            mutation.success_message = messages[0] if snapshot["target"] else messages[1]
            write(snapshot["target"], moved_to(snapshot["target"]))

        def rollback():
            write(snapshot["previous"], snapshot.get("count"))

        def reconcile(body: Any) -> bool:
            actual = server_state(body) if server_state else None
            if actual is None or actual == snapshot["target"]:
                return False
            # the server toggled from the opposite of what we had cached
            logger.debug("%s %s: server reports %s", kind.value, entity_id, actual)
            write(actual, moved_to(actual))
            mutation.success_message = messages[0] if actual else messages[1]
            return True

        mutation = OptimisticMutation(
            key=(kind, entity_id),
            apply=apply,
            commit=lambda: commit(snapshot["target"]),
            rollback=rollback,
            failure_message=failure_message,
            login_prompt=login_prompt,
            reconcile=reconcile,
        )
        return self.runner.run(mutation)

    def toggle_like(self, article_id: int) -> MutationState:
        return self._toggle(
            article_id,
            InteractionKind.LIKED,
            lambda _target: self.api.like_article(article_id),
            ("Article liked!", "Article unliked"),
            "Please login to like articles",
            counter=LIKE_COUNT,
            failure_message="Failed to update like",
            server_state=reported("liked"),
        )

    def toggle_bookmark(self, article_id: int) -> MutationState:
        return self._toggle(
            article_id,
            InteractionKind.BOOKMARKED,
            lambda _target: self.api.bookmark_article(article_id),
            ("Added to bookmarks!", "Removed from bookmarks"),
            "Please login to bookmark articles",
            failure_message="Failed to update bookmark",
            server_state=reported("bookmarked"),
        )

    def toggle_reading_list(self, article_id: int) -> MutationState:
        def commit(adding: bool):
            if adding:
                return self.api.add_to_reading_list(article_id)
            return self.api.remove_from_reading_list(article_id)

        return self._toggle(
            article_id,
            InteractionKind.IN_READING_LIST,
            commit,
            ("Added to reading list!", "Removed from reading list"),
            "Please login to add to reading list",
            failure_message="Failed to update reading list",
        )

    def toggle_follow(self, user_id: int) -> MutationState:
        def commit(following: bool):
            if following:
                return self.api.follow_user(user_id)
            return self.api.unfollow_user(user_id)

        return self._toggle(
            user_id,
            InteractionKind.FOLLOWING,
            commit,
            ("Following!", "Unfollowed"),
            "Please login to follow users",
            counter=FOLLOWER_COUNT,
            failure_message="Failed to follow user",
        )

    def toggle_comment_like(self, comment: Comment) -> MutationState:
        """Like/unlike a comment, keeping ``comment.like_count`` in step."""

        def sync(count: int) -> None:
            comment.like_count = count

        return self._toggle(
            comment.id,
            InteractionKind.COMMENT_LIKED,
            lambda _target: self.api.like_comment(comment.id),
            ("Comment liked", "Comment unliked"),
            "Please login to like comments",
            counter=COMMENT_LIKE_COUNT,
            failure_message="Failed to like comment",
            server_state=reported("liked"),
            seed_count=lambda: comment.like_count,
            on_count=sync,
        )

    def report_article(self, article_id: int, reason: str) -> None:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for reporting this article")
        self.runner.session.require("report articles")
        self.api.report_article(article_id, reason)
