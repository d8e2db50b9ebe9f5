"""Unit tests for digest building and dispatchers."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from jobwatch.config.environment import EnvironmentConfig
from jobwatch.config.models import NotificationConfig
from jobwatch.notifications import (
    AlertDigest,
    DeliveryError,
    EmailDispatcher,
    LogDispatcher,
    build_digests,
    digest_context,
    get_dispatcher,
)
from jobwatch.pipeline.models import ExecutionReport, RunStatus, UnitResult
from tests.helpers import make_match, make_posting, make_profile

RUN_AT = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def make_report(units):
    return ExecutionReport(
        execution_id="exec_1",
        status=RunStatus.COMPLETED,
        started_at=RUN_AT,
        finished_at=RUN_AT,
        unit_results=units,
    )


@pytest.fixture
def profile():
    return make_profile(notification_email="owner@example.com")


@pytest.fixture
def digest(profile):
    match = make_match(profile=profile)
    match.match_id = 7
    return AlertDigest(profile=profile, matches=[match], total_matches=1, channel="email")


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="user@example.com",
        smtp_pass="secret123",
        alert_to_email="fallback@example.com",
    )


class TestBuildDigests:
    """Tests for build_digests."""

    def test_one_digest_per_matching_profile(self, profile):
        """Test that profiles without matches get no digest."""
        other = make_profile(id="profile-2")
        low = make_match(profile=profile)
        low.score = 40
        high = make_match(
            posting=make_posting(url="https://jobs.acme.example/postings/102"), profile=profile
        )
        high.score = 90
        report = make_report(
            [
                UnitResult(profile_id=profile.id, site="acme", matched_count=2, matches=[low, high]),
                UnitResult(profile_id=other.id, site="acme"),
            ]
        )

        digests = build_digests(report, [profile, other], channel="email")

        assert len(digests) == 1
        assert digests[0].profile_id == profile.id
        assert digests[0].matches == [high, low]
        assert digests[0].channel == "email"

    def test_matches_capped(self, profile):
        """Test that the digest keeps the best matches and the full total."""
        matches = [
            make_match(
                posting=make_posting(url=f"https://jobs.acme.example/postings/{n}"), profile=profile
            )
            for n in range(3)
        ]
        for score, match in zip((50, 70, 60), matches):
            match.score = score
        report = make_report([UnitResult(profile_id=profile.id, site="acme", matches=matches)])

        digest = build_digests(report, [profile], max_matches=2)[0]

        assert [m.score for m in digest.matches] == [70, 60]
        assert digest.total_matches == 3

    def test_matches_across_sites_merged(self, profile):
        """Test that a profile's matches from several sites form one digest."""
        first = make_match(profile=profile)
        second = make_match(
            posting=make_posting(
                url="https://boards.globex.example/9", source_site="globex"
            ),
            profile=profile,
        )
        report = make_report(
            [
                UnitResult(profile_id=profile.id, site="acme", matches=[first]),
                UnitResult(profile_id=profile.id, site="globex", matches=[second]),
            ]
        )

        digests = build_digests(report, [profile])

        assert len(digests) == 1
        assert digests[0].total_matches == 2


class TestDigestContext:
    """Tests for template context building."""

    def test_defaults_for_missing_fields(self, profile):
        """Test fallbacks for missing company and location."""
        match = make_match(posting=make_posting(company=None, location=None), profile=profile)
        context = digest_context(AlertDigest(profile=profile, matches=[match], total_matches=1))

        entry = context["matches"][0]
        assert context["profile_name"] == "Software Engineer"
        assert entry["company"] == "Unknown company"
        assert entry["location"] == "Unspecified"
        assert entry["posted_at"] == "2025-03-02T09:00:00.000000Z"
        assert entry["contract_type"] == "permanent"


class TestLogDispatcher:
    """Tests for LogDispatcher."""

    def test_logs_summary_and_each_match(self, digest):
        """Test one summary record plus one record per match."""
        mock_logger = Mock()

        result = LogDispatcher(logger_instance=mock_logger).dispatch(digest)

        assert result.is_success()
        assert result.channel == "log"
        assert result.delivered_match_ids == [7]
        assert mock_logger.info.call_count == 2
        events = [call.kwargs["extra"]["event"] for call in mock_logger.info.call_args_list]
        assert events == ["notification.digest.logged", "notification.digest.match"]


class TestEmailDispatcher:
    """Tests for EmailDispatcher."""

    def _dispatcher(self, env_config, smtp_client, sleeps, **config):
        return EmailDispatcher(
            env_config,
            NotificationConfig(channel="email", **config),
            smtp_client=smtp_client,
            sleep=sleeps.append,
            logger_instance=Mock(),
        )

    def test_sent_to_profile_address(self, env_config, digest):
        """Test a successful first attempt addressed to the profile's email."""
        smtp_client = Mock()
        sleeps = []

        result = self._dispatcher(env_config, smtp_client, sleeps).dispatch(digest)

        assert result.status == "sent"
        assert result.attempts == 1
        assert result.delivered_match_ids == [7]
        message = smtp_client.send.call_args.args[0]
        assert message["To"] == "owner@example.com"
        assert message["Subject"] == "[jobwatch] 1 new match for Software Engineer"
        assert sleeps == []

    def test_falls_back_to_alert_address(self, env_config):
        """Test ALERT_TO_EMAIL is used when the profile has no email."""
        profile = make_profile()
        digest = AlertDigest(profile=profile, matches=[make_match(profile=profile)], total_matches=1)
        smtp_client = Mock()

        self._dispatcher(env_config, smtp_client, []).dispatch(digest)

        assert smtp_client.send.call_args.args[0]["To"] == "fallback@example.com"

    def test_retry_then_success(self, env_config, digest):
        """Test exponential backoff between attempts."""
        smtp_client = Mock()
        smtp_client.send.side_effect = [DeliveryError("down"), DeliveryError("down"), None]
        sleeps = []

        result = self._dispatcher(env_config, smtp_client, sleeps).dispatch(digest)

        assert result.status == "sent"
        assert result.attempts == 3
        assert sleeps == [5.0, 10.0]

    def test_exhausted_retries_fail(self, env_config, digest):
        """Test that max_retries + 1 failures give a failed result."""
        smtp_client = Mock()
        smtp_client.send.side_effect = DeliveryError("SMTP error: 451")
        sleeps = []

        result = self._dispatcher(env_config, smtp_client, sleeps, max_retries=2).dispatch(digest)

        assert result.status == "failed"
        assert result.attempts == 3
        assert result.error == "SMTP error: 451"
        assert result.delivered_match_ids == []
        assert smtp_client.send.call_count == 3

    def test_delay_capped(self, env_config, digest):
        """Test that the backoff delay never exceeds one minute."""
        smtp_client = Mock()
        smtp_client.send.side_effect = DeliveryError("down")
        sleeps = []

        self._dispatcher(
            env_config, smtp_client, sleeps, max_retries=4, retry_initial_delay=30.0
        ).dispatch(digest)

        assert sleeps == [30.0, 60.0, 60.0, 60.0]

    def test_no_recipient_skipped(self, digest):
        """Test that a digest without any recipient is skipped, not sent."""
        digest.profile = make_profile()
        smtp_client = Mock()

        result = self._dispatcher(
            EnvironmentConfig(smtp_host="smtp.example.com", smtp_port=25), smtp_client, []
        ).dispatch(digest)

        assert result.status == "skipped"
        assert "No valid recipient" in result.error
        smtp_client.send.assert_not_called()


class TestGetDispatcher:
    """Tests for dispatcher selection."""

    def test_email_channel(self, env_config):
        """Test that the email channel selects EmailDispatcher."""
        dispatcher = get_dispatcher(NotificationConfig(channel="email"), env_config)
        assert isinstance(dispatcher, EmailDispatcher)

    def test_log_channel(self, env_config):
        """Test the default log channel."""
        assert isinstance(get_dispatcher(NotificationConfig(), env_config), LogDispatcher)
