# Database models
from datetime import datetime, timedelta, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class TimestampMixin:
    """Rows that track an edit time on top of their creation time."""

    def touch(self):
        """Refresh ``updated_at``; the stored value only ever moves forward."""
        now = utcnow()
        if self.updated_at is not None and now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now


class User(TimestampMixin, db.Model):
    __tablename__ = 'users'
    __table_args__ = (
        db.CheckConstraint('followers_count >= 0', name='ck_users_followers_count'),
        db.CheckConstraint('following_count >= 0', name='ck_users_following_count'),
        db.CheckConstraint('posts_count >= 0', name='ck_users_posts_count'),
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(30), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    profile_picture_url = db.Column(db.Text, nullable=True)
    bio = db.Column(db.Text, nullable=True)
    followers_count = db.Column(db.Integer, nullable=False, default=0)
    following_count = db.Column(db.Integer, nullable=False, default=0)
    posts_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_public_dict(self):
        # never expose password_hash
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "profile_picture_url": self.profile_picture_url,
            "bio": self.bio,
            "followers_count": self.followers_count,
            "following_count": self.following_count,
            "posts_count": self.posts_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<User {self.id} {self.username!r}>'


class Post(TimestampMixin, db.Model):
    __tablename__ = 'posts'
    __table_args__ = (
        db.CheckConstraint('likes_count >= 0', name='ck_posts_likes_count'),
        db.CheckConstraint('comments_count >= 0', name='ck_posts_comments_count'),
        db.Index('ix_posts_user_id_created_at', 'user_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    image_url = db.Column(db.Text, nullable=False)
    caption = db.Column(db.Text, nullable=True)
    likes_count = db.Column(db.Integer, nullable=False, default=0)
    comments_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "image_url": self.image_url,
            "caption": self.caption,
            "likes_count": self.likes_count,
            "comments_count": self.comments_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<Post {self.id} by {self.user_id}>'


class Comment(TimestampMixin, db.Model):
    __tablename__ = 'comments'
    __table_args__ = (
        db.Index('ix_comments_post_id_created_at', 'post_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id'), nullable=False)
    content = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "post_id": self.post_id,
            "content": self.content,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }


class Like(db.Model):
    __tablename__ = 'likes'
    # backstop for the duplicate-like guard in services.like_post
    __table_args__ = (
        db.UniqueConstraint('user_id', 'post_id', name='uq_likes_user_post'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "post_id": self.post_id,
            "created_at": _iso(self.created_at)
        }


class Follow(db.Model):
    __tablename__ = 'follows'
    __table_args__ = (
        db.UniqueConstraint('follower_id', 'following_id', name='uq_follows_pair'),
    )

    id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    following_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "follower_id": self.follower_id,
            "following_id": self.following_id,
            "created_at": _iso(self.created_at)
        }
