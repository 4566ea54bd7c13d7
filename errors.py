# Domain errors raised by services and rendered by the app's error handlers


class SocialError(Exception):
    error_code = 'SOCIAL_ERROR'
    status_code = 400
    default_message = 'Request could not be completed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"error_code": self.error_code, "error": self.message}


class NotFound(SocialError):
    error_code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Resource not found'


class DuplicateIdentity(SocialError):
    error_code = 'DUPLICATE_IDENTITY'
    status_code = 409
    default_message = 'Username or email already exists'


class InvalidCredentials(SocialError):
    """Login failure. The message never says which half was wrong."""
    error_code = 'INVALID_CREDENTIALS'
    status_code = 401
    default_message = 'Invalid email or password'

    def __init__(self):
        super().__init__()


class AlreadyLiked(SocialError):
    error_code = 'ALREADY_LIKED'
    status_code = 409
    default_message = 'User has already liked this post'


class AlreadyFollowing(SocialError):
    error_code = 'ALREADY_FOLLOWING'
    status_code = 409
    default_message = 'Follow relationship already exists'


class SelfFollowNotAllowed(SocialError):
    error_code = 'SELF_FOLLOW_NOT_ALLOWED'
    status_code = 400
    default_message = 'Users cannot follow themselves'
