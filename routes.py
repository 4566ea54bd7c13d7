# Remote procedure routes
#
# Mutations are POSTed as JSON, queries are GETs with query-string input.
# Each route validates its input, hands db.session to the matching domain
# operation and serialises the result. Domain errors propagate to the error
# handlers registered in app.py.
from flask import Blueprint, jsonify, request
from marshmallow import ValidationError

import forms
import services
from models import db, utcnow

# Create blueprints for different route categories
main_bp = Blueprint('main', __name__)
auth_bp = Blueprint('auth', __name__)
users_bp = Blueprint('users', __name__)
posts_bp = Blueprint('posts', __name__)


def _json_input(schema):
    if not request.is_json:
        raise ValidationError({"_schema": ["Content-Type must be application/json"]})
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({"_schema": ["Request body must be a JSON object"]})
    return schema.load(data)


def _query_input(schema):
    return schema.load(request.args.to_dict())


def _page(data):
    return {key: data[key] for key in ('limit', 'offset') if key in data}


@main_bp.route('/healthcheck', methods=['GET'])
def healthcheck():
    return jsonify({"status": "ok", "timestamp": utcnow().isoformat()}), 200


# Authentication

@auth_bp.route('/registerUser', methods=['POST'])
def register_user():
    data = _json_input(forms.RegisterUserSchema())
    user = services.register_user(db.session, data['username'], data['email'], data['password'])
    return jsonify(user.to_public_dict()), 201


@auth_bp.route('/loginUser', methods=['POST'])
def login_user():
    data = _json_input(forms.LoginUserSchema())
    user = services.login_user(db.session, data['email'], data['password'])
    return jsonify(user.to_public_dict()), 200


# Users

@users_bp.route('/getUserById', methods=['GET'])
def get_user_by_id():
    data = _query_input(forms.GetUserByIdSchema())
    user = services.get_user_by_id(db.session, data['id'])
    return jsonify(user.to_public_dict() if user else None), 200


@users_bp.route('/updateUserProfile', methods=['POST'])
def update_user_profile():
    data = _json_input(forms.UpdateUserProfileSchema())
    changes = services.ProfileChanges.from_mapping(data)
    user = services.update_user_profile(db.session, data['id'], changes)
    return jsonify(user.to_public_dict()), 200


@users_bp.route('/searchUsers', methods=['GET'])
def search_users():
    data = _query_input(forms.SearchUsersSchema())
    users = services.search_users(db.session, data['query'], data.get('limit'))
    return jsonify([user.to_public_dict() for user in users]), 200


@users_bp.route('/followUser', methods=['POST'])
def follow_user():
    data = _json_input(forms.FollowUserSchema())
    follow = services.follow_user(db.session, data['follower_id'], data['following_id'])
    return jsonify(follow.to_dict()), 201


@users_bp.route('/unfollowUser', methods=['POST'])
def unfollow_user():
    data = _json_input(forms.FollowUserSchema())
    return jsonify(services.unfollow_user(db.session, data['follower_id'], data['following_id'])), 200


@users_bp.route('/getFollowers', methods=['GET'])
def get_followers():
    data = _query_input(forms.GetUserByIdSchema())
    followers = services.get_followers(db.session, data['id'])
    return jsonify([user.to_public_dict() for user in followers]), 200


@users_bp.route('/getFollowing', methods=['GET'])
def get_following():
    data = _query_input(forms.GetUserByIdSchema())
    following = services.get_following(db.session, data['id'])
    return jsonify([user.to_public_dict() for user in following]), 200


# Posts

@posts_bp.route('/createPost', methods=['POST'])
def create_post():
    data = _json_input(forms.CreatePostSchema())
    post = services.create_post(db.session, data['user_id'], data['image_url'], data.get('caption'))
    return jsonify(post.to_dict()), 201


@posts_bp.route('/updatePost', methods=['POST'])
def update_post():
    data = _json_input(forms.UpdatePostSchema())
    caption = services.Patch.from_mapping(data, 'caption')
    post = services.update_post(db.session, data['id'], caption)
    return jsonify(post.to_dict()), 200


@posts_bp.route('/getPostsByUserId', methods=['GET'])
def get_posts_by_user_id():
    data = _query_input(forms.GetPostsByUserIdSchema())
    posts = services.get_posts_by_user_id(db.session, data['user_id'], **_page(data))
    return jsonify([post.to_dict() for post in posts]), 200


@posts_bp.route('/getFeed', methods=['GET'])
def get_feed():
    data = _query_input(forms.GetFeedSchema())
    posts = services.get_feed(db.session, data['user_id'], **_page(data))
    return jsonify([post.to_dict() for post in posts]), 200


@posts_bp.route('/likePost', methods=['POST'])
def like_post():
    data = _json_input(forms.LikePostSchema())
    like = services.like_post(db.session, data['user_id'], data['post_id'])
    return jsonify(like.to_dict()), 201


@posts_bp.route('/unlikePost', methods=['POST'])
def unlike_post():
    data = _json_input(forms.LikePostSchema())
    return jsonify(services.unlike_post(db.session, data['user_id'], data['post_id'])), 200


@posts_bp.route('/createComment', methods=['POST'])
def create_comment():
    data = _json_input(forms.CreateCommentSchema())
    comment = services.create_comment(db.session, data['user_id'], data['post_id'], data['content'])
    return jsonify(comment.to_dict()), 201


@posts_bp.route('/getComments', methods=['GET'])
def get_comments():
    data = _query_input(forms.GetCommentsSchema())
    comments = services.get_comments(db.session, data['post_id'], **_page(data))
    return jsonify([comment.to_dict() for comment in comments]), 200
