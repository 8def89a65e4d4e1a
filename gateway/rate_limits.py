"""Rate-limit policy and cached budget state per logical service."""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RateLimitPolicy(BaseModel):
    """Budget the gateway's rate-limiting plugin enforces for one service."""

    requests: int = Field(ge=1)
    window_sec: float = Field(gt=0)


class RateLimitState(BaseModel):
    """Remaining budget for a service as last reported by the authority."""

    model_config = ConfigDict(frozen=True)

    service: str
    remaining: int
    reset_time: datetime

    def is_exhausted(self, now: datetime | None = None) -> bool:
        """True while the budget is spent and the window has not reset."""
        now = now or datetime.now(timezone.utc)
        return self.remaining <= 0 and self.reset_time > now

    @classmethod
    def conservative(cls, service: str, policy: RateLimitPolicy | None = None) -> "RateLimitState":
        """Fallback used when the authority cannot be queried.

        With a policy the estimate is one full window of budget; without one
        it is 50 requests for the next hour.
        """
        now = datetime.now(timezone.utc)
        if policy is None:
            return cls(service=service, remaining=50, reset_time=now + timedelta(hours=1))
        return cls(
            service=service,
            remaining=policy.requests,
            reset_time=now + timedelta(seconds=policy.window_sec),
        )


class RateLimitStatusBody(BaseModel):
    """Response body of the gateway's rate-limit status endpoint.

    resetTime may be an ISO timestamp or a Unix timestamp; pydantic treats
    large integers as milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    remaining: int
    reset_time: datetime = Field(alias="resetTime")

    @field_validator("reset_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
