"""Threaded comments: tree building and the comment thread service."""
import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import MAX_REPLY_DEPTH
from .data_models import Comment
from .errors import ValidationError

logger = logging.getLogger("curio.comments")


class OrphanPolicy(str, Enum):
    """What to do with a reply whose parent is not in the list."""
    DROP = "drop"
    PROMOTE = "promote"


def build_comment_tree(comments: Iterable[Comment], orphans: OrphanPolicy = OrphanPolicy.DROP) -> List[Comment]:
    """Turn a flat comment list into a forest of root comments.

    Replies keep the order of the input list. A reply whose parent is missing
    (e.g. deleted) is dropped, or becomes a root under OrphanPolicy.PROMOTE.
    The input comments are not modified.
    """
    comments = list(comments)
    by_id: Dict[int, Comment] = {}
    for c in comments:
        by_id[c.id] = Comment(
            id=c.id,
            parent_id=c.parent_id,
            article_id=c.article_id,
            author_id=c.author_id,
            author=c.author,
            content=c.content,
            like_count=c.like_count,
            created_at=c.created_at,
            replies=[],
        )

    roots: List[Comment] = []
    for c in comments:
        node = by_id[c.id]
        if c.parent_id is None:
            roots.append(node)
        elif c.parent_id in by_id and c.parent_id != c.id:
            by_id[c.parent_id].replies.append(node)
        elif orphans is OrphanPolicy.PROMOTE:
            roots.append(node)
        else:
            logger.debug("dropping comment %s: parent %s not found", c.id, c.parent_id)
    return roots


def can_reply(depth: int) -> bool:
    """Replies are offered only above the nesting cap; depth 0 is a root."""
    return depth < MAX_REPLY_DEPTH


def iter_thread(roots: List[Comment], depth: int = 0) -> Iterator[Tuple[int, Comment]]:
    """Yield (depth, comment) pairs in display order."""
    for comment in roots:
        yield depth, comment
        yield from iter_thread(comment.replies, depth + 1)


def find_comment(roots: List[Comment], comment_id: int) -> Optional[Comment]:
    for _depth, comment in iter_thread(roots):
        if comment.id == comment_id:
            return comment
    return None


class CommentThread:
    """The comment forest for one article, plus the actions on it."""

    def __init__(self, api, session, article_id: int, orphans: OrphanPolicy = OrphanPolicy.DROP):
        self.api = api
        self.session = session
        self.article_id = article_id
        self.orphans = orphans
        self.roots: List[Comment] = []

    @property
    def count(self) -> int:
        return len(self.roots)

    def load(self) -> List[Comment]:
        self.roots = build_comment_tree(self.api.get_comments(self.article_id), self.orphans)
        return self.roots

    def depth_of(self, comment_id: int) -> Optional[int]:
        for depth, comment in iter_thread(self.roots):
            if comment.id == comment_id:
                return depth
        return None

    def post(self, content: str, parent_id: Optional[int] = None) -> List[Comment]:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty")
        self.session.require("comment")
        if parent_id is not None:
            depth = self.depth_of(parent_id)
            if depth is None:
                raise ValidationError("The comment you are replying to no longer exists")
            if not can_reply(depth):
                raise ValidationError("This thread is too deep to reply to")
        self.api.create_comment(self.article_id, text, parent_id)
        return self.load()

    def edit(self, comment_id: int, content: str) -> List[Comment]:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty")
        self.session.require("edit comments")
        self.api.update_comment(comment_id, text)
        return self.load()

    def delete(self, comment_id: int) -> None:
        self.session.require("delete comments")
        self.api.delete_comment(comment_id)
        self.roots = self._without(self.roots, comment_id)

    def report(self, comment_id: int, reason: str) -> None:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for reporting this comment")
        self.session.require("report comments")
        self.api.report_comment(comment_id, reason)

    @classmethod
    def _without(cls, nodes: List[Comment], comment_id: int) -> List[Comment]:
        kept = []
        for node in nodes:
            if node.id == comment_id:
                continue
            node.replies = cls._without(node.replies, comment_id)
            kept.append(node)
        return kept
