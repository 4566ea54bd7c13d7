# Domain operations
#
# Every operation takes the store session as its first argument and runs its
# checks, its write and its counter updates inside one transaction. Callers
# (routes.py, the tests) decide which session that is.
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

from flask_bcrypt import Bcrypt
from marshmallow import ValidationError
from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import IntegrityError

from errors import (
    AlreadyFollowing,
    AlreadyLiked,
    DuplicateIdentity,
    InvalidCredentials,
    NotFound,
    SelfFollowNotAllowed,
)
from models import Comment, Follow, Like, Post, User

logger = logging.getLogger(__name__)


class PasswordHasher(Bcrypt):
    """Flask-Bcrypt plus a decoy hash checked when a login names an unknown email."""

    decoy_hash = None

    def init_app(self, app):
        super().init_app(app)
        # built at startup with the configured cost, never on a login path
        self.decoy_hash = self.generate_password_hash('not-a-real-password').decode('utf-8')


bcrypt = PasswordHasher()

DEFAULT_POSTS_PAGE = 20
DEFAULT_FEED_PAGE = 10
DEFAULT_COMMENTS_PAGE = 20


@dataclass(frozen=True)
class Patch:
    """One field of a partial update.

    ``KEEP`` leaves the stored value alone. ``Patch.set(None)`` clears a
    nullable column, which is a different request from ``KEEP``.
    """
    provided: bool = False
    value: Any = None

    @classmethod
    def set(cls, value):
        return cls(provided=True, value=value)

    @classmethod
    def from_mapping(cls, data, key):
        if key in data:
            return cls.set(data[key])
        return KEEP

    def apply(self, obj, attr):
        if self.provided:
            setattr(obj, attr, self.value)


KEEP = Patch()


@dataclass(frozen=True)
class ProfileChanges:
    username: Patch = field(default=KEEP)
    email: Patch = field(default=KEEP)
    profile_picture_url: Patch = field(default=KEEP)
    bio: Patch = field(default=KEEP)

    FIELDS = ('username', 'email', 'profile_picture_url', 'bio')

    @classmethod
    def from_mapping(cls, data):
        return cls(**{name: Patch.from_mapping(data, name) for name in cls.FIELDS})

    def apply(self, user):
        for name in self.FIELDS:
            getattr(self, name).apply(user, name)


@contextmanager
def atomic(session):
    """Commit on success, roll back and re-raise on any error."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def _increment(session, model, row_id, column):
    col = getattr(model, column)
    session.execute(
        update(model)
        .where(model.id == row_id)
        .values({column: col + 1})
        .execution_options(synchronize_session=False)
    )


def _decrement(session, model, row_id, column):
    # floored at zero even if the stored value had already drifted
    col = getattr(model, column)
    session.execute(
        update(model)
        .where(model.id == row_id)
        .values({column: case((col > 0, col - 1), else_=0)})
        .execution_options(synchronize_session=False)
    )


def _escape_like(term):
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


# Existence lookups behind the duplicate guards

def _find_identity_holder(session, username, email):
    return session.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()


def _find_like(session, user_id, post_id):
    return session.query(Like).filter_by(user_id=user_id, post_id=post_id).first()


def _find_follow(session, follower_id, following_id):
    return session.query(Follow)\
        .filter_by(follower_id=follower_id, following_id=following_id)\
        .first()


# Passwords

def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def check_password(password_hash, password):
    return bcrypt.check_password_hash(password_hash, password)


def _burn_password_check(password):
    """Spend one bcrypt verification so unknown emails cost the same as bad passwords."""
    check_password(bcrypt.decoy_hash, password)


# Users

def register_user(session, username, email, password):
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        profile_picture_url=None,
        bio=None,
        followers_count=0,
        following_count=0,
        posts_count=0
    )
    try:
        with atomic(session):
            existing = _find_identity_holder(session, username, email)
            if existing:
                if existing.username == username:
                    raise DuplicateIdentity('Username already exists')
                raise DuplicateIdentity('Email already exists')
            session.add(user)
    except IntegrityError:
        raise DuplicateIdentity() from None

    logger.info(f"Registered user {user.id} ({username})")
    return user


def login_user(session, email, password):
    user = session.query(User).filter(User.email == email).first()
    if user is None:
        _burn_password_check(password)
        raise InvalidCredentials()
    if not check_password(user.password_hash, password):
        raise InvalidCredentials()
    return user


def get_user_by_id(session, user_id) -> Optional[User]:
    return session.get(User, user_id)


def _ensure_identity_free(session, column, value, user_id, label):
    taken = session.query(User.id).filter(column == value, User.id != user_id).first()
    if taken:
        raise DuplicateIdentity(f'{label} already exists')


def update_user_profile(session, user_id, changes: ProfileChanges):
    """Apply a partial profile update.

    Username and email stay unique across users; re-submitting your own
    value is allowed. ``updated_at`` moves forward even when nothing else
    changes, and counters are never touched here.
    """
    for name in ('username', 'email'):
        patch = getattr(changes, name)
        if patch.provided and patch.value is None:
            raise ValidationError({name: ['Field may not be null.']})

    try:
        with atomic(session):
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(f'User with id {user_id} not found')
            if changes.username.provided:
                _ensure_identity_free(session, User.username, changes.username.value, user_id, 'Username')
            if changes.email.provided:
                _ensure_identity_free(session, User.email, changes.email.value, user_id, 'Email')
            changes.apply(user)
            user.touch()
    except IntegrityError:
        raise DuplicateIdentity() from None

    logger.info(f"Updated profile of user {user_id}")
    return user


def search_users(session, query, limit=None):
    pattern = f'%{_escape_like(query)}%'
    q = session.query(User)\
        .filter(User.username.ilike(pattern, escape='\\'))\
        .order_by(User.id)
    if limit is not None:
        q = q.limit(limit)
    return q.all()


# Posts

def create_post(session, user_id, image_url, caption=None):
    with atomic(session):
        if session.get(User, user_id) is None:
            raise NotFound(f'User with id {user_id} not found')

        post = Post(
            user_id=user_id,
            image_url=image_url,
            caption=caption or None,
            likes_count=0,
            comments_count=0
        )
        session.add(post)
        _increment(session, User, user_id, 'posts_count')

    logger.info(f"User {user_id} created post {post.id}")
    return post


def update_post(session, post_id, caption: Patch = KEEP):
    with atomic(session):
        post = session.get(Post, post_id)
        if post is None:
            raise NotFound(f'Post with id {post_id} not found')
        caption.apply(post, 'caption')
        post.touch()
    return post


def get_posts_by_user_id(session, user_id, limit=DEFAULT_POSTS_PAGE, offset=0):
    return session.query(Post)\
        .filter(Post.user_id == user_id)\
        .order_by(Post.created_at.desc(), Post.id.desc())\
        .limit(limit)\
        .offset(offset)\
        .all()


def get_feed(session, user_id, limit=DEFAULT_FEED_PAGE, offset=0):
    """Posts by ``user_id`` and everyone they follow, newest first.

    Built from the follow table on every call, so a follow or unfollow shows
    up on the next request.
    """
    followed = select(Follow.following_id).where(Follow.follower_id == user_id)
    return session.query(Post)\
        .filter(or_(Post.user_id == user_id, Post.user_id.in_(followed)))\
        .order_by(Post.created_at.desc(), Post.id.desc())\
        .limit(limit)\
        .offset(offset)\
        .all()


# Likes

def like_post(session, user_id, post_id):
    try:
        with atomic(session):
            if _find_like(session, user_id, post_id) is not None:
                raise AlreadyLiked()
            if session.get(Post, post_id) is None:
                raise NotFound('Post not found')
            if session.get(User, user_id) is None:
                raise NotFound('User not found')

            like = Like(user_id=user_id, post_id=post_id)
            session.add(like)
            session.flush()
            _increment(session, Post, post_id, 'likes_count')
    except IntegrityError:
        # lost a race against an identical request
        raise AlreadyLiked() from None

    logger.info(f"User {user_id} liked post {post_id}")
    return like


def unlike_post(session, user_id, post_id):
    """Make sure ``user_id`` does not like ``post_id``. Always succeeds."""
    with atomic(session):
        like = _find_like(session, user_id, post_id)
        if like is None:
            return {"success": True}
        session.delete(like)
        _decrement(session, Post, post_id, 'likes_count')

    logger.info(f"User {user_id} unliked post {post_id}")
    return {"success": True}


# Comments

def create_comment(session, user_id, post_id, content):
    with atomic(session):
        if session.get(User, user_id) is None:
            raise NotFound(f'User with id {user_id} not found')
        if session.get(Post, post_id) is None:
            raise NotFound(f'Post with id {post_id} not found')

        comment = Comment(user_id=user_id, post_id=post_id, content=content)
        session.add(comment)
        _increment(session, Post, post_id, 'comments_count')

    logger.info(f"User {user_id} commented on post {post_id}")
    return comment


def get_comments(session, post_id, limit=DEFAULT_COMMENTS_PAGE, offset=0):
    # oldest first, unlike post listings
    return session.query(Comment)\
        .filter(Comment.post_id == post_id)\
        .order_by(Comment.created_at.asc(), Comment.id.asc())\
        .limit(limit)\
        .offset(offset)\
        .all()


# Follows

def follow_user(session, follower_id, following_id):
    if follower_id == following_id:
        raise SelfFollowNotAllowed()

    try:
        with atomic(session):
            if session.get(User, follower_id) is None:
                raise NotFound('Follower user does not exist')
            if session.get(User, following_id) is None:
                raise NotFound('User to follow does not exist')
            if _find_follow(session, follower_id, following_id) is not None:
                raise AlreadyFollowing()

            follow = Follow(follower_id=follower_id, following_id=following_id)
            session.add(follow)
            session.flush()
            _increment(session, User, follower_id, 'following_count')
            _increment(session, User, following_id, 'followers_count')
    except IntegrityError:
        raise AlreadyFollowing() from None

    logger.info(f"User {follower_id} followed user {following_id}")
    return follow


def unfollow_user(session, follower_id, following_id):
    """Remove a follow. Reports ``success: False`` when there was nothing to remove."""
    with atomic(session):
        follow = _find_follow(session, follower_id, following_id)
        if follow is None:
            return {"success": False}
        session.delete(follow)
        _decrement(session, User, follower_id, 'following_count')
        _decrement(session, User, following_id, 'followers_count')

    logger.info(f"User {follower_id} unfollowed user {following_id}")
    return {"success": True}


def get_followers(session, user_id):
    return session.query(User)\
        .join(Follow, User.id == Follow.follower_id)\
        .filter(Follow.following_id == user_id)\
        .order_by(Follow.created_at, Follow.id)\
        .all()


def get_following(session, user_id):
    return session.query(User)\
        .join(Follow, User.id == Follow.following_id)\
        .filter(Follow.follower_id == user_id)\
        .order_by(Follow.created_at, Follow.id)\
        .all()
