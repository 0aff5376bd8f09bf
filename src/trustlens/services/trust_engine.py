"""Trust scoring for X accounts.

``calculate_trust`` is a pure function of the raw profile fields (and the
current time, for account age). Weights:

- Account age: 25 % (newer is riskier)
- Follower/following ratio: 25 % (bots follow back aggressively)
- Activity (post count): 25 %
- Engagement (media and likes): 15 %
- Listed count: 10 % (human curation, often unavailable)

Accounts flagged as automated short-circuit to a fixed low score.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Final

from trustlens.schemas.trust import FactorStatus, ScoreBreakdown, TrustReport, TrustVerdict, UserInfo
from trustlens.services.provider import XRawData

NEUTRAL_SCORE: Final[float] = 50.0
AUTOMATED_SCORE: Final[int] = 15

TRUSTED_THRESHOLD: Final[int] = 70
CAUTION_THRESHOLD: Final[int] = 40

NEW_ACCOUNT_DAYS: Final[int] = 30
ESTABLISHED_ACCOUNT_DAYS: Final[int] = 730

WEIGHT_AGE: Final[float] = 0.25
WEIGHT_RATIO: Final[float] = 0.25
WEIGHT_ACTIVITY: Final[float] = 0.25
WEIGHT_ENGAGEMENT: Final[float] = 0.15
WEIGHT_LISTED: Final[float] = 0.10

_TWITTER_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _interpolate(value: float, low: float, high: float, low_score: float, high_score: float) -> float:
    normalized = (value - low) / (high - low)
    return low_score + normalized * (high_score - low_score)


def _parse_created_at(created_at: str) -> datetime | None:
    text = created_at.strip()
    if not text:
        return None
    try:
        parsed = datetime.strptime(text, _TWITTER_DATE_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def account_age_days(created_at: str, now: datetime | None = None) -> int:
    """Whole days since creation; 0 when the date cannot be parsed."""
    created = _parse_created_at(created_at)
    if created is None:
        return 0
    now = now or datetime.now(UTC)
    return max(0, (now - created).days)


def score_account_age(age_days: int) -> float:
    if age_days == 0:
        # Unknown creation date is treated as maximum risk.
        return 0.0
    if age_days >= ESTABLISHED_ACCOUNT_DAYS:
        return 100.0
    if age_days < NEW_ACCOUNT_DAYS:
        return 10.0
    return _interpolate(age_days, NEW_ACCOUNT_DAYS, ESTABLISHED_ACCOUNT_DAYS, 10, 100)


def score_listed_count(listed_count: int | None) -> float:
    if listed_count is None:
        return NEUTRAL_SCORE
    if listed_count == 0:
        return 20.0
    if listed_count >= 10:
        return 100.0
    return min(100.0, _interpolate(listed_count, 1, 10, 40, 100))


def score_follower_ratio(followers_count: int | None, friends_count: int | None) -> float:
    if followers_count is None or friends_count is None:
        return NEUTRAL_SCORE
    if followers_count < 10:
        return 20.0
    if friends_count == 0:
        return 50.0 if followers_count > 0 else 30.0

    ratio = followers_count / friends_count
    if ratio >= 2.0:
        return 100.0
    if ratio < 0.5:
        return 20.0
    return _interpolate(ratio, 0.5, 2.0, 20, 100)


def score_activity(statuses_count: int | None, age_days: int) -> float:
    if statuses_count is None:
        return NEUTRAL_SCORE
    if statuses_count == 0:
        return 10.0
    if age_days > NEW_ACCOUNT_DAYS and statuses_count < 10:
        return 30.0
    if statuses_count >= 100:
        return 100.0
    if statuses_count >= 50:
        return 80.0
    normalized = min(1.0, (statuses_count - 10) / (100 - 10))
    return 40 + normalized * (100 - 40)


def score_engagement(media_count: int | None, favourites_count: int | None) -> float:
    if media_count is None and favourites_count is None:
        return NEUTRAL_SCORE
    has_media = (media_count or 0) > 0
    has_likes = (favourites_count or 0) > 0
    if has_media and has_likes:
        return 90.0
    if has_media or has_likes:
        return 60.0
    return 30.0


def is_possible_impersonator(age_days: int, blue_verified: bool) -> bool:
    """Verified accounts are normally established; a new one is suspicious."""
    return blue_verified and age_days < NEW_ACCOUNT_DAYS


def risk_flags(data: XRawData, age_days: int) -> list[str]:
    """Human-readable risk indicators."""
    flags: list[str] = []

    if data.is_automated is True:
        flags.append("Account is marked as automated/bot")

    if age_days < NEW_ACCOUNT_DAYS:
        flags.append("Account is less than 30 days old")
    if age_days == 0:
        flags.append("Unable to verify account creation date")

    if data.statuses_count is not None and data.statuses_count == 0:
        flags.append("Account has never posted a tweet")
    if age_days > NEW_ACCOUNT_DAYS and data.statuses_count is not None and data.statuses_count < 10:
        flags.append("Very low tweet count for account age")

    if data.media_count == 0 and data.favourites_count == 0:
        flags.append("No media posts or likes (low engagement)")

    if data.followers_count is not None and data.followers_count < 10:
        flags.append("Very low follower count")
    if data.friends_count and data.followers_count is not None:
        if data.followers_count / data.friends_count < 0.5:
            flags.append("Following significantly more accounts than followers (bot-like pattern)")

    if data.listed_count is not None and data.listed_count == 0:
        flags.append("Account has never been added to a list")

    if is_possible_impersonator(age_days, data.blue_verified):
        flags.append("Verified account created recently (possible impersonator)")

    return flags


def score_to_verdict(score: int) -> TrustVerdict:
    if score >= TRUSTED_THRESHOLD:
        return "TRUSTED"
    if score >= CAUTION_THRESHOLD:
        return "CAUTION"
    return "DANGER"


def _factor_status(score: float) -> FactorStatus:
    if score >= 70:
        return "positive"
    if score >= 40:
        return "neutral"
    return "negative"


def _format_ratio(ratio: float) -> str:
    rounded = _round_half_up(ratio * 10) / 10
    return str(int(rounded)) if rounded.is_integer() else str(rounded)


def _age_explanation(age_days: int) -> str:
    if age_days >= ESTABLISHED_ACCOUNT_DAYS:
        return "Account is well-established (2+ years old)"
    if age_days >= 365:
        return "Account is established (1+ year old)"
    if age_days >= 90:
        return "Account is relatively new (3+ months old)"
    return "Account is very new (less than 3 months old)"


def _ratio_explanation(data: XRawData) -> str:
    if data.followers_count is None or data.friends_count is None:
        return "Follower data unavailable"
    if data.friends_count == 0:
        return "Account follows no one"
    ratio = _format_ratio(data.followers_count / data.friends_count)
    return f"Healthy ratio: {ratio}x more followers than following"


def _activity_explanation(statuses_count: int | None) -> str:
    if statuses_count is None:
        return "Activity data unavailable"
    if statuses_count >= 100:
        return f"Active account with {statuses_count:,} tweets"
    if statuses_count >= 50:
        return f"Moderate activity with {statuses_count:,} tweets"
    if statuses_count > 0:
        return f"Low activity with {statuses_count} tweets"
    return "No tweets posted"


def _engagement_explanation(data: XRawData) -> str:
    has_media = (data.media_count or 0) > 0
    has_likes = (data.favourites_count or 0) > 0
    if has_media and has_likes:
        return "Account posts media and engages with content"
    if has_media or has_likes:
        return "Some engagement detected"
    return "No engagement detected"


def _listed_explanation(listed_count: int | None) -> str:
    if listed_count is None:
        return "Listed count unavailable"
    if listed_count >= 10:
        return f"Highly curated: listed {listed_count} times"
    if listed_count > 0:
        return f"Listed {listed_count} time{'s' if listed_count > 1 else ''}"
    return "Never added to lists"


def _factor(name: str, score: float, weight: float, explanation: str) -> ScoreBreakdown:
    return ScoreBreakdown(
        factor=name,
        score=score,
        weight=weight,
        contribution=_round_half_up(score * weight),
        status=_factor_status(score),
        explanation=explanation,
    )


def _positive_indicators(data: XRawData, age_days: int) -> list[str]:
    indicators: list[str] = []
    if age_days >= 365:
        indicators.append("Well-established account")
    if data.blue_verified:
        indicators.append("Verified account")
    if data.followers_count is not None and data.followers_count >= 1000:
        indicators.append("Significant follower base")
    if data.statuses_count is not None and data.statuses_count >= 100:
        indicators.append("Active posting history")
    if data.media_count is not None and data.media_count > 0:
        indicators.append("Posts media content")
    if data.friends_count and data.followers_count is not None:
        if data.followers_count / data.friends_count >= 2.0:
            indicators.append("Strong organic growth pattern")
    return indicators


def _confidence(data: XRawData) -> int:
    """Share of optional signals the provider actually supplied."""
    signals = (
        data.followers_count,
        data.friends_count,
        data.statuses_count,
        data.media_count,
        data.favourites_count,
        data.listed_count,
    )
    available = sum(1 for value in signals if value is not None)
    return _round_half_up(available / len(signals) * 100)


def _user_info(data: XRawData) -> UserInfo:
    if data.user_info is not None:
        return data.user_info
    return UserInfo(
        id=data.id,
        username="unknown",
        name="Unknown User",
        created_at=data.created_at,
        blue_verified=data.blue_verified,
        followers_count=data.followers_count,
        following_count=data.friends_count,
    )


def calculate_trust(data: XRawData, *, now: datetime | None = None) -> TrustReport:
    """Transform raw account metadata into a trust assessment."""
    age_days = account_age_days(data.created_at, now)

    if data.is_automated is True:
        return TrustReport(
            user_info=_user_info(data),
            score=AUTOMATED_SCORE,
            verdict="DANGER",
            flags=list(dict.fromkeys(risk_flags(data, age_days))),
            breakdown=[
                ScoreBreakdown(
                    factor="Account Type",
                    score=AUTOMATED_SCORE,
                    weight=1.0,
                    contribution=AUTOMATED_SCORE,
                    status="negative",
                    explanation="Account is marked as automated/bot",
                )
            ],
            confidence=100,
        )

    age_score = score_account_age(age_days)
    ratio_score = score_follower_ratio(data.followers_count, data.friends_count)
    activity_score = score_activity(data.statuses_count, age_days)
    engagement_score = score_engagement(data.media_count, data.favourites_count)
    listed_score = score_listed_count(data.listed_count)

    weighted = _round_half_up(
        age_score * WEIGHT_AGE
        + ratio_score * WEIGHT_RATIO
        + activity_score * WEIGHT_ACTIVITY
        + engagement_score * WEIGHT_ENGAGEMENT
        + listed_score * WEIGHT_LISTED
    )

    breakdown = [
        _factor("Account Age", age_score, WEIGHT_AGE, _age_explanation(age_days)),
        _factor("Follower Ratio", ratio_score, WEIGHT_RATIO, _ratio_explanation(data)),
        _factor(
            "Activity Level",
            activity_score,
            WEIGHT_ACTIVITY,
            _activity_explanation(data.statuses_count),
        ),
        _factor("Engagement", engagement_score, WEIGHT_ENGAGEMENT, _engagement_explanation(data)),
        _factor("Listed Count", listed_score, WEIGHT_LISTED, _listed_explanation(data.listed_count)),
    ]

    indicators = _positive_indicators(data, age_days)
    return TrustReport(
        user_info=_user_info(data),
        score=weighted,
        verdict=score_to_verdict(weighted),
        flags=risk_flags(data, age_days),
        breakdown=breakdown,
        positive_indicators=indicators or None,
        confidence=_confidence(data),
    )
