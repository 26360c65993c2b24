"""Unit tests for the Alertmanager payload models."""

import pytest
from pydantic import ValidationError

from src.alerts.models import AlertGroup


class TestAlertGroup:
    def test_minimal_payload(self) -> None:
        group = AlertGroup.model_validate({"version": "4", "status": "firing"})

        assert group.alerts == []
        assert group.commonLabels == {}
        assert group.externalURL == ""
        assert not group.is_resolved

    def test_full_payload(self) -> None:
        group = AlertGroup.model_validate(
            {
                "version": "4",
                "groupKey": '{}:{alertname="HighLatency"}',
                "truncatedAlerts": 0,
                "status": "resolved",
                "receiver": "cachet",
                "groupLabels": {"alertname": "HighLatency"},
                "commonLabels": {"alertname": "HighLatency", "severity": "page"},
                "commonAnnotations": {"summary": "p99 above 2s"},
                "externalURL": "http://alertmanager:9093",
                "alerts": [
                    {
                        "status": "resolved",
                        "labels": {"alertname": "HighLatency", "service": "api"},
                        "annotations": {"summary": "p99 above 2s"},
                        "startsAt": "2024-01-01T10:00:00Z",
                        "endsAt": "2024-01-01T10:30:00Z",
                        "generatorURL": "http://prometheus:9090/graph",
                        "fingerprint": "c0ffee",
                    }
                ],
            }
        )

        assert group.is_resolved
        assert group.alerts[0].labels["service"] == "api"
        assert group.alerts[0].endsAt == "2024-01-01T10:30:00Z"

    def test_alert_without_labels(self) -> None:
        group = AlertGroup.model_validate({"version": "4", "status": "firing", "alerts": [{}]})

        assert group.alerts[0].labels == {}

    def test_unknown_fields_ignored(self) -> None:
        group = AlertGroup.model_validate({"version": "4", "status": "firing", "somethingNew": True})

        assert not hasattr(group, "somethingNew")

    @pytest.mark.parametrize("missing", ["version", "status"])
    def test_required_fields(self, missing: str) -> None:
        payload = {"version": "4", "status": "firing"}
        del payload[missing]

        with pytest.raises(ValidationError):
            AlertGroup.model_validate(payload)
