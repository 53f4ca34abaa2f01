"""Unit tests for SourceManager."""

from unittest.mock import patch

from tokenprice.src.SourceManager import SourceManager, SourceStatus


class FakeClock:
    """Settable clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSourceManagerInit:
    """Test SourceManager initialization."""

    def test_init_with_sources(self) -> None:
        """Sources should be tracked from init."""
        manager = SourceManager(["dexscreener", "geckoterminal", "coingecko"])
        assert len(manager.get_all_status()) == 3

    def test_custom_backoff_values(self) -> None:
        """Custom backoff values should be stored."""
        manager = SourceManager(["a"], base_backoff_seconds=10.0, max_backoff_seconds=60.0)
        assert manager.base_backoff_seconds == 10.0
        assert manager.max_backoff_seconds == 60.0

    def test_initial_status(self) -> None:
        """Initial status should have zero failures."""
        manager = SourceManager(["a"])
        status = manager.get_source_status("a")

        assert status is not None
        assert status.consecutive_failures == 0
        assert status.backoff_until == 0.0
        assert status.total_failures == 0
        assert status.total_successes == 0
        assert status.last_error == ""


class TestSourceManagerFailures:
    """Test failure recording and backoff."""

    def test_exponential_backoff(self) -> None:
        """Backoff should start at 5 s and double with each consecutive failure."""
        manager = SourceManager(["a"])
        assert [manager.record_failure("a") for _ in range(4)] == [5.0, 10.0, 20.0, 40.0]

    def test_max_backoff_cap(self) -> None:
        """Backoff should be capped at 5 minutes by default."""
        manager = SourceManager(["a"])
        for _ in range(10):
            backoff = manager.record_failure("a")
        assert backoff == 300.0

    def test_reason_recorded(self) -> None:
        """The failure reason should be kept for status output."""
        manager = SourceManager(["a"])
        manager.record_failure("a", "no price")
        assert manager.get_source_status("a").last_error == "no price"

    def test_failure_unknown_source(self) -> None:
        """Recording failure for unknown source should create it."""
        manager = SourceManager(["a"])
        manager.record_failure("unknown")

        status = manager.get_source_status("unknown")
        assert status is not None
        assert status.consecutive_failures == 1


class TestSourceManagerSuccess:
    """Test success recording."""

    def test_success_resets_backoff(self) -> None:
        """Success should reset consecutive failures and backoff."""
        clock = FakeClock()
        manager = SourceManager(["a"], clock=clock)
        manager.record_failure("a")
        manager.record_failure("a")
        assert not manager.is_source_active("a")

        manager.record_success("a")
        status = manager.get_source_status("a")
        assert status.consecutive_failures == 0
        assert status.backoff_until == 0.0
        assert manager.is_source_active("a")

    def test_success_preserves_total_failures(self) -> None:
        """Success should not reset total_failures."""
        manager = SourceManager(["a"])
        manager.record_failure("a")
        manager.record_failure("a")
        manager.record_success("a")
        manager.record_failure("a")

        status = manager.get_source_status("a")
        assert status.total_failures == 3
        assert status.consecutive_failures == 1
        assert status.total_successes == 1

    def test_backoff_restarts_after_success(self) -> None:
        """A failure after a success starts again from the base backoff."""
        manager = SourceManager(["a"])
        manager.record_failure("a")
        manager.record_failure("a")
        manager.record_success("a")
        assert manager.record_failure("a") == 5.0


class TestSourceManagerActiveSources:
    """Test active source filtering."""

    def test_filter_preserves_order(self) -> None:
        """Active sources keep the caller's priority order."""
        manager = SourceManager(["dexscreener", "geckoterminal", "coingecko"])
        manager.record_failure("geckoterminal")
        assert manager.filter_active(["dexscreener", "geckoterminal", "coingecko"]) == [
            "dexscreener",
            "coingecko",
        ]

    def test_unknown_source_active(self) -> None:
        """Sources never seen are active."""
        manager = SourceManager(["a"])
        assert manager.is_source_active("unknown") is True
        assert manager.filter_active(["unknown"]) == ["unknown"]

    def test_source_active_after_backoff(self) -> None:
        """Source should be active again once the backoff has elapsed."""
        clock = FakeClock(1000.0)
        manager = SourceManager(["a"], base_backoff_seconds=10.0, clock=clock)
        manager.record_failure("a")

        clock.now = 1005.0
        assert manager.filter_active(["a"]) == []

        clock.now = 1010.0  # Exactly at backoff_until
        assert manager.filter_active(["a"]) == ["a"]

    @patch("tokenprice.src.SourceManager.time.time")
    def test_default_clock_is_wall_time(self, mock_time) -> None:
        """Without a clock the manager should use time.time."""
        mock_time.return_value = 1000.0
        manager = SourceManager(["a"], base_backoff_seconds=30.0)
        manager.record_failure("a")

        mock_time.return_value = 1010.0
        assert manager.get_backoff_remaining("a") == 20.0

        mock_time.return_value = 1050.0
        assert manager.get_backoff_remaining("a") == 0.0


class TestSourceManagerHelpers:
    """Test helper methods."""

    def test_get_backoff_remaining_unknown(self) -> None:
        """get_backoff_remaining for unknown source should return 0."""
        manager = SourceManager(["a"])
        assert manager.get_backoff_remaining("unknown") == 0.0

    def test_get_source_status_unknown(self) -> None:
        """get_source_status for unknown source should return None."""
        manager = SourceManager(["a"])
        assert manager.get_source_status("unknown") is None

    def test_get_all_status(self) -> None:
        """get_all_status should return a copy of all statuses."""
        manager = SourceManager(["a", "b"])
        manager.record_failure("a")
        manager.record_success("b")

        all_status = manager.get_all_status()
        assert all_status["a"].consecutive_failures == 1
        assert all_status["b"].total_successes == 1

        all_status["a"] = SourceStatus()
        assert manager.get_source_status("a").consecutive_failures == 1

    def test_reset_all(self) -> None:
        """reset_all should clear all sources."""
        manager = SourceManager(["a", "b"])
        manager.record_failure("a")
        manager.record_success("b")

        manager.reset_all()

        for source in ["a", "b"]:
            status = manager.get_source_status(source)
            assert status.consecutive_failures == 0
            assert status.total_successes == 0
            assert manager.is_source_active(source)
