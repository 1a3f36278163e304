"""Verification flows: GitHub announcement issues and wallet signatures."""

from oraclenet.auth.challenge import Challenge, ChallengeStore, InMemoryChallengeStore
from oraclenet.auth.exceptions import VerificationFailed, VerificationRejected
from oraclenet.auth.github_flow import GitHubVerificationFlow
from oraclenet.auth.siwe import SiweVerificationFlow

__all__ = [
    "Challenge",
    "ChallengeStore",
    "InMemoryChallengeStore",
    "GitHubVerificationFlow",
    "SiweVerificationFlow",
    "VerificationFailed",
    "VerificationRejected",
]
