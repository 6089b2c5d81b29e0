"""Pluggable safety checks run by the cascade."""

from memewatch.detector.checks.base import CheckContext, CheckRunner, SafetyCheck
from memewatch.detector.checks.creator import CreatorTrustCheck
from memewatch.detector.checks.holders import BaseHolderDistributionCheck, HolderDistributionCheck
from memewatch.detector.checks.honeypot import HoneypotIsCheck, RugCheckSummaryCheck
from memewatch.detector.checks.lp_lock import BaseLpLockCheck, RugCheckLpLockCheck
from memewatch.detector.checks.momentum import MomentumCheck
from memewatch.detector.checks.social import SocialSentimentCheck

__all__ = [
    "BaseHolderDistributionCheck",
    "BaseLpLockCheck",
    "CheckContext",
    "CheckRunner",
    "CreatorTrustCheck",
    "HolderDistributionCheck",
    "HoneypotIsCheck",
    "MomentumCheck",
    "RugCheckLpLockCheck",
    "RugCheckSummaryCheck",
    "SafetyCheck",
    "SocialSentimentCheck",
]
