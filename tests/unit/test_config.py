"""Tests for application settings."""
from app.core.config import Settings, get_settings


class TestSettings:

    def test_alert_threshold_defaults(self, test_settings):
        assert test_settings.route_deviation_threshold_meters == 500.0
        assert test_settings.stoppage_threshold_minutes == 30.0
        assert test_settings.tracking_lost_missed_intervals == 2
        assert test_settings.idle_trip_threshold_minutes == 120.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("IDLE_TRIP_THRESHOLD_MINUTES", "90")
        assert get_settings().idle_trip_threshold_minutes == 90.0

    def test_celery_reads_its_own_urls(self, test_settings):
        assert test_settings.celery_broker_url == "redis://localhost:6379/15"
        assert "redis_url" not in Settings.model_fields
