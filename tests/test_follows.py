import pytest

import services
from errors import AlreadyFollowing, AlreadyLiked, NotFound, SelfFollowNotAllowed
from models import Follow, Post, User


def _user(session, user_id):
    return session.get(User, user_id)


def test_follow_bumps_both_counters(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')

    follow = services.follow_user(session, bob.id, alice.id)

    assert follow.follower_id == bob.id
    assert follow.following_id == alice.id
    assert _user(session, alice.id).followers_count == 1
    assert _user(session, alice.id).following_count == 0
    assert _user(session, bob.id).following_count == 1
    assert _user(session, bob.id).followers_count == 0


def test_self_follow_creates_nothing(make_user, session):
    alice = make_user('alice')

    with pytest.raises(SelfFollowNotAllowed):
        services.follow_user(session, alice.id, alice.id)
    assert session.query(Follow).count() == 0
    assert _user(session, alice.id).followers_count == 0


def test_self_follow_is_checked_before_existence():
    # no session is needed to reject a self-follow
    with pytest.raises(SelfFollowNotAllowed):
        services.follow_user(None, 1, 1)


def test_follow_unknown_users(make_user, session):
    alice = make_user('alice')

    with pytest.raises(NotFound, match='Follower user does not exist'):
        services.follow_user(session, 99, alice.id)
    with pytest.raises(NotFound, match='User to follow does not exist'):
        services.follow_user(session, alice.id, 99)
    assert _user(session, alice.id).following_count == 0
    assert _user(session, alice.id).followers_count == 0


def test_follow_twice_is_rejected(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')
    services.follow_user(session, bob.id, alice.id)

    with pytest.raises(AlreadyFollowing):
        services.follow_user(session, bob.id, alice.id)
    assert session.query(Follow).count() == 1
    assert _user(session, alice.id).followers_count == 1


def test_unfollow_without_follow_reports_failure(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')
    carol = make_user('carol')
    services.follow_user(session, carol.id, alice.id)

    assert services.unfollow_user(session, bob.id, alice.id) == {"success": False}
    assert _user(session, alice.id).followers_count == 1
    assert _user(session, bob.id).following_count == 0


def test_unfollow_decrements_both_counters(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')
    services.follow_user(session, bob.id, alice.id)

    assert services.unfollow_user(session, bob.id, alice.id) == {"success": True}
    assert session.query(Follow).count() == 0
    assert _user(session, alice.id).followers_count == 0
    assert _user(session, bob.id).following_count == 0


def test_unfollow_floors_counters_at_zero(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')
    services.follow_user(session, bob.id, alice.id)
    _user(session, alice.id).followers_count = 0
    _user(session, bob.id).following_count = 0
    session.commit()

    services.unfollow_user(session, bob.id, alice.id)

    assert _user(session, alice.id).followers_count == 0
    assert _user(session, bob.id).following_count == 0


def test_followers_and_following(make_user, session):
    alice = make_user('alice')
    bob = make_user('bob')
    carol = make_user('carol')
    services.follow_user(session, bob.id, alice.id)
    services.follow_user(session, carol.id, alice.id)
    services.follow_user(session, alice.id, carol.id)

    assert [u.username for u in services.get_followers(session, alice.id)] == ['bob', 'carol']
    assert [u.username for u in services.get_following(session, alice.id)] == ['carol']
    assert [u.username for u in services.get_following(session, bob.id)] == ['alice']
    assert services.get_followers(session, bob.id) == []
    assert services.get_followers(session, 500) == []


def test_follow_counters_match_follow_rows(make_user, session):
    users = [make_user(f'user{i}') for i in range(4)]
    pairs = [(0, 1), (0, 2), (1, 0), (2, 0), (3, 0), (3, 1)]
    for a, b in pairs:
        services.follow_user(session, users[a].id, users[b].id)
    services.unfollow_user(session, users[3].id, users[0].id)
    services.unfollow_user(session, users[3].id, users[0].id)

    for user in users:
        refreshed = _user(session, user.id)
        assert refreshed.following_count == session.query(Follow).filter_by(follower_id=user.id).count()
        assert refreshed.followers_count == session.query(Follow).filter_by(following_id=user.id).count()


def test_like_follow_feed_scenario(session):
    alice = services.register_user(session, 'alice', 'alice@example.com', 'secret123')
    bob = services.register_user(session, 'bob', 'bob@example.com', 'secret123')
    assert (alice.id, bob.id) == (1, 2)

    post = services.create_post(session, alice.id, 'https://img.example.com/p.jpg')
    services.like_post(session, bob.id, post.id)
    assert session.get(Post, post.id).likes_count == 1
    with pytest.raises(AlreadyLiked):
        services.like_post(session, bob.id, post.id)

    services.unlike_post(session, bob.id, post.id)
    assert session.get(Post, post.id).likes_count == 0

    services.follow_user(session, bob.id, alice.id)
    assert _user(session, alice.id).followers_count == 1
    assert _user(session, bob.id).following_count == 1
    assert post.id in [p.id for p in services.get_feed(session, bob.id)]

    services.unfollow_user(session, bob.id, alice.id)
    assert post.id not in [p.id for p in services.get_feed(session, bob.id)]


def test_duplicate_follow_that_slips_past_the_check(make_user, session, monkeypatch):
    alice = make_user('alice')
    bob = make_user('bob')
    services.follow_user(session, bob.id, alice.id)
    monkeypatch.setattr(services, '_find_follow', lambda *args: None)

    with pytest.raises(AlreadyFollowing):
        services.follow_user(session, bob.id, alice.id)
    assert session.query(Follow).count() == 1
    assert _user(session, alice.id).followers_count == 1
    assert _user(session, bob.id).following_count == 1
