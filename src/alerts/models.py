"""Pydantic models for the Alertmanager webhook payload.

See https://prometheus.io/docs/alerting/latest/configuration/#webhook_config.
Only ``version`` and ``status`` are required; Alertmanager may omit or send
empty values for everything else.
"""

from pydantic import BaseModel, ConfigDict, Field

RESOLVED = "resolved"


class AlertDetail(BaseModel):
    """A single alert inside a webhook group."""

    model_config = ConfigDict(extra="ignore")

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    startsAt: str = ""
    endsAt: str = ""
    status: str | None = None
    generatorURL: str | None = None
    fingerprint: str | None = None


class AlertGroup(BaseModel):
    """A batch of alerts delivered in one Alertmanager webhook call."""

    model_config = ConfigDict(extra="ignore")

    version: str
    status: str
    groupKey: str = ""
    receiver: str = ""
    groupLabels: dict[str, str] = Field(default_factory=dict)
    commonLabels: dict[str, str] = Field(default_factory=dict)
    commonAnnotations: dict[str, str] = Field(default_factory=dict)
    externalURL: str = ""
    alerts: list[AlertDetail] = Field(default_factory=list)
    truncatedAlerts: int | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == RESOLVED
