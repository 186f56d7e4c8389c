"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import VerificationCodeFactory

    record = await VerificationCodeFactory.create_async(db_session, email="a@b.com")
    expired = await VerificationCodeFactory.create_async(db_session, expired=True)
"""

from tests.factories.verification_code import VerificationCodeFactory

__all__ = [
    "VerificationCodeFactory",
]
