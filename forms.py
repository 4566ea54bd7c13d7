# Input validation for the remote procedures
from marshmallow import RAISE, Schema, fields, validate

MAX_PAGE_SIZE = 100
# largest value a signed 64-bit INTEGER column or OFFSET accepts
MAX_DB_INT = 2 ** 63 - 1


class BaseSchema(Schema):
    class Meta:
        unknown = RAISE


def _username(**kwargs):
    return fields.String(validate=validate.Length(min=3, max=30), **kwargs)


def _id(**kwargs):
    return fields.Integer(validate=validate.Range(min=1, max=MAX_DB_INT), **kwargs)


def _limit():
    return fields.Integer(validate=validate.Range(min=1, max=MAX_PAGE_SIZE))


def _offset():
    return fields.Integer(validate=validate.Range(min=0, max=MAX_DB_INT))


# Users

class RegisterUserSchema(BaseSchema):
    username = _username(required=True)
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(required=True, validate=validate.Length(min=6))


class LoginUserSchema(BaseSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True)


class GetUserByIdSchema(BaseSchema):
    id = _id(required=True)


class UpdateUserProfileSchema(BaseSchema):
    """Absent keys are left out of the loaded dict, so the caller can tell
    "not supplied" apart from an explicit ``null``."""
    id = _id(required=True)
    username = _username()
    email = fields.Email(validate=validate.Length(max=255))
    profile_picture_url = fields.String(allow_none=True)
    bio = fields.String(allow_none=True)


class SearchUsersSchema(BaseSchema):
    query = fields.String(required=True, validate=validate.Length(min=1))
    limit = _limit()


# Posts

class CreatePostSchema(BaseSchema):
    user_id = _id(required=True)
    image_url = fields.String(required=True, validate=validate.Length(min=1))
    caption = fields.String(allow_none=True)


class UpdatePostSchema(BaseSchema):
    id = _id(required=True)
    caption = fields.String(allow_none=True)


class GetPostsByUserIdSchema(BaseSchema):
    user_id = _id(required=True)
    limit = _limit()
    offset = _offset()


class GetFeedSchema(GetPostsByUserIdSchema):
    pass


class LikePostSchema(BaseSchema):
    user_id = _id(required=True)
    post_id = _id(required=True)


# Comments

class CreateCommentSchema(BaseSchema):
    user_id = _id(required=True)
    post_id = _id(required=True)
    content = fields.String(required=True, validate=validate.Length(min=1, max=500))


class GetCommentsSchema(BaseSchema):
    post_id = _id(required=True)
    limit = _limit()
    offset = _offset()


# Follows

class FollowUserSchema(BaseSchema):
    follower_id = _id(required=True)
    following_id = _id(required=True)
