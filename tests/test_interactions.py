"""Tests for the concrete article/author/comment toggles."""

import pytest

from curio.data_models import InteractionKind
from curio.errors import APIError, AuthRequiredError, ValidationError
from curio.interaction_cache import InteractionStateCache
from curio.interactions import FOLLOWER_COUNT, LIKE_COUNT, InteractionController
from curio.mutations import MutationRunner, MutationState
from tests.conftest import make_comment


@pytest.fixture()
def cache(api, session):
    return InteractionStateCache(api, session)


@pytest.fixture()
def controller(api, cache, runner):
    return InteractionController(api, cache, runner)


class TestArticleLike:

    def test_toggle_twice_restores_state(self, controller, cache, api):
        cache.set_count(7, LIKE_COUNT, 10)

        assert controller.toggle_like(7) is MutationState.COMMITTED
        assert cache.get(7, InteractionKind.LIKED) is True
        assert cache.get_count(7, LIKE_COUNT) == 11

        assert controller.toggle_like(7) is MutationState.COMMITTED
        assert cache.get(7, InteractionKind.LIKED) is False
        assert cache.get_count(7, LIKE_COUNT) == 10
        assert api.like_article.call_count == 2

    def test_success_notices(self, controller, notices):
        controller.toggle_like(7)
        controller.toggle_like(7)
        assert [m for m, _ in notices.messages] == ["Article liked!", "Article unliked"]

    def test_failure_reverts_flag_and_count(self, controller, cache, api, notices):
        cache.set_count(7, LIKE_COUNT, 10)
        api.like_article.side_effect = APIError("server error", status_code=500)

        assert controller.toggle_like(7) is MutationState.ROLLED_BACK
        assert cache.get(7, InteractionKind.LIKED) is False
        assert cache.get_count(7, LIKE_COUNT) == 10
        assert notices.errors == ["Failed to update like"]

    def test_logged_out_prompt(self, api, anon_session, notices):
        cache = InteractionStateCache(api, anon_session)
        controller = InteractionController(api, cache, MutationRunner(anon_session, notify=notices))

        with pytest.raises(AuthRequiredError, match="Please login to like articles"):
            controller.toggle_like(7)
        api.like_article.assert_not_called()
        assert cache.get(7, InteractionKind.LIKED) is False


class TestOtherToggles:

    def test_bookmark(self, controller, cache, api, notices):
        controller.toggle_bookmark(7)
        assert cache.get(7, InteractionKind.BOOKMARKED) is True
        api.bookmark_article.assert_called_once_with(7)
        assert notices.messages[-1][0] == "Added to bookmarks!"

    def test_reading_list_add_then_remove(self, controller, cache, api):
        controller.toggle_reading_list(7)
        api.add_to_reading_list.assert_called_once_with(7)
        assert cache.get(7, InteractionKind.IN_READING_LIST) is True

        controller.toggle_reading_list(7)
        api.remove_from_reading_list.assert_called_once_with(7)
        assert cache.get(7, InteractionKind.IN_READING_LIST) is False

    def test_follow_adjusts_follower_count(self, controller, cache, api):
        cache.set_count(3, FOLLOWER_COUNT, 5)
        controller.toggle_follow(3)
        api.follow_user.assert_called_once_with(3)
        assert cache.get_count(3, FOLLOWER_COUNT) == 6

        controller.toggle_follow(3)
        api.unfollow_user.assert_called_once_with(3)
        assert cache.get_count(3, FOLLOWER_COUNT) == 5

    def test_comment_like_updates_comment(self, controller, cache, api):
        comment = make_comment(5, like_count=2)
        controller.toggle_comment_like(comment)

        assert comment.like_count == 3
        assert cache.get(5, InteractionKind.COMMENT_LIKED) is True
        api.like_comment.assert_called_once_with(5)

    def test_comment_like_failure_restores_count(self, controller, api):
        comment = make_comment(5, like_count=2)
        api.like_comment.side_effect = APIError("nope")
        assert controller.toggle_comment_like(comment) is MutationState.ROLLED_BACK
        assert comment.like_count == 2

    def test_comment_and_article_counts_are_separate(self, controller, cache):
        cache.set_count(5, LIKE_COUNT, 40)
        controller.toggle_comment_like(make_comment(5, like_count=0))
        assert cache.get_count(5, LIKE_COUNT) == 40


class TestServerReconciliation:

    def test_comment_already_liked_on_server(self, controller, cache, api, notices):
        """The like endpoint toggles; its reply wins over the local guess."""
        comment = make_comment(5, like_count=4)
        api.like_comment.return_value = {"success": True, "message": "Comment unliked", "liked": False}

        assert controller.toggle_comment_like(comment) is MutationState.COMMITTED
        assert cache.get(5, InteractionKind.COMMENT_LIKED) is False
        assert comment.like_count == 3
        assert notices.messages[-1][0] == "Comment unliked"

    def test_agreeing_reply_changes_nothing(self, controller, cache, api, notices):
        cache.set_count(7, LIKE_COUNT, 10)
        api.like_article.return_value = {"success": True, "liked": True}
        controller.toggle_like(7)
        assert cache.get(7, InteractionKind.LIKED) is True
        assert cache.get_count(7, LIKE_COUNT) == 11
        assert notices.messages[-1][0] == "Article liked!"

    def test_bookmark_reply_wins(self, controller, cache, api):
        api.bookmark_article.return_value = {"success": True, "bookmarked": False}
        controller.toggle_bookmark(7)
        assert cache.get(7, InteractionKind.BOOKMARKED) is False

    def test_redraw_after_correction(self, api, session, notices):
        redraws = []
        runner = MutationRunner(session, notify=notices, on_change=lambda: redraws.append(1))
        controller = InteractionController(api, InteractionStateCache(api, session), runner)
        api.like_article.return_value = {"success": True, "liked": False}
        controller.toggle_like(7)
        assert len(redraws) == 2


class TestSnapshotTiming:

    def test_state_read_after_key_is_reserved(self, api, session, notices):
        """A toggle that settles between the key press and the run uses the settled state."""
        cache = InteractionStateCache(api, session)
        cache.set_count(7, LIKE_COUNT, 10)

        class SettlingRunner(MutationRunner):
            def run(self, mutation):
                # an earlier like on the same article commits first
                cache.set(7, InteractionKind.LIKED, True)
                cache.set_count(7, LIKE_COUNT, 11)
                return super().run(mutation)

        controller = InteractionController(api, cache, SettlingRunner(session, notify=notices))
        controller.toggle_like(7)

        assert cache.get(7, InteractionKind.LIKED) is False
        assert cache.get_count(7, LIKE_COUNT) == 10
        assert notices.messages[-1][0] == "Article unliked"


class TestReportArticle:

    def test_reason_required(self, controller, api):
        with pytest.raises(ValidationError):
            controller.report_article(7, "   ")
        api.report_article.assert_not_called()

    def test_sends_trimmed_reason(self, controller, api):
        controller.report_article(7, "  spam  ")
        api.report_article.assert_called_once_with(7, "spam")

    def test_logged_out(self, api, anon_session, notices):
        controller = InteractionController(
            api, InteractionStateCache(api, anon_session), MutationRunner(anon_session, notify=notices)
        )
        with pytest.raises(AuthRequiredError, match="report articles"):
            controller.report_article(7, "spam")
