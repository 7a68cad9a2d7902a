"""Unit tests for UserStore."""
from tvratings_service.repos import UserStore


class TestVerificationCodes:
    """Tests for verification code storage."""

    def test_add_and_check(self, user_store):
        """Test a stored code validates."""
        user_store.add_verification_code("a@b.c", "ABC123")

        assert user_store.check_verification_code("a@b.c", "ABC123") is True

    def test_wrong_code_or_email(self, user_store):
        """Test mismatches do not validate."""
        user_store.add_verification_code("a@b.c", "ABC123")

        assert user_store.check_verification_code("a@b.c", "XYZ789") is False
        assert user_store.check_verification_code("x@y.z", "ABC123") is False

    def test_new_code_replaces_previous(self, user_store):
        """Test only the most recent code per email is valid."""
        # Arrange
        user_store.add_verification_code("a@b.c", "FIRST1")

        # Act
        user_store.add_verification_code("a@b.c", "SECOND")

        # Assert
        assert user_store.check_verification_code("a@b.c", "FIRST1") is False
        assert user_store.check_verification_code("a@b.c", "SECOND") is True

    def test_delete(self, user_store):
        """Test a deleted code no longer validates."""
        user_store.add_verification_code("a@b.c", "ABC123")

        deleted = user_store.delete_verification_code("a@b.c")

        assert deleted == 1
        assert user_store.check_verification_code("a@b.c", "ABC123") is False


class TestFollows:
    """Tests for follow lists."""

    def test_follow_twice_is_idempotent(self, user_store, catalog_path):
        """Test following the same show twice keeps a single row."""
        # Act
        first = user_store.follow_show("a@b.c", "tt0903747")
        second = user_store.follow_show("a@b.c", "tt0903747")

        # Assert
        assert first == 1
        assert second == 0
        assert user_store.get_followed_shows("a@b.c", catalog_path) == [
            {"showId": "tt0903747", "title": "Breaking Bad"}
        ]

    def test_unfollow(self, user_store, catalog_path):
        """Test unfollowing removes the show."""
        user_store.follow_show("a@b.c", "tt0903747")
        user_store.follow_show("a@b.c", "tt0141842")

        user_store.unfollow_show("a@b.c", "tt0903747")

        assert user_store.get_followed_shows("a@b.c", catalog_path) == [
            {"showId": "tt0141842", "title": "The Sopranos"}
        ]

    def test_unfollow_unknown_is_noop(self, user_store):
        """Test unfollowing a show that is not followed."""
        assert user_store.unfollow_show("a@b.c", "tt0903747") == 0

    def test_follow_lists_are_per_email(self, user_store, catalog_path):
        """Test users only see their own follows."""
        user_store.follow_show("a@b.c", "tt0903747")
        user_store.follow_show("d@e.f", "tt0386676")

        follows = user_store.get_followed_shows("d@e.f", catalog_path)

        assert follows == [{"showId": "tt0386676", "title": "The Office"}]

    def test_unknown_show_has_no_title(self, user_store, catalog_path):
        """Test a followed show missing from the snapshot keeps its id."""
        user_store.follow_show("a@b.c", "tt404")

        assert user_store.get_followed_shows("a@b.c", catalog_path) == [{"showId": "tt404", "title": None}]

    def test_tables_survive_reopen(self, tmp_path):
        """Test follows persist across open/close."""
        store = UserStore(tmp_path / "users.snap").open()
        store.follow_show("a@b.c", "tt0903747")
        store.close()

        store.open()
        count = store.query("SELECT COUNT(*) AS count FROM follows")[0]["count"]
        store.close()

        assert count == 1
