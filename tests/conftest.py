"""Shared pytest fixtures for card registration tests."""

from __future__ import annotations

from typing import Generator

import pytest

from cardpush.application.use_cases.registration import CardRegistrationService
from cardpush.domain.entities import Address, CardData
from cardpush.infrastructure.http.http_client import HttpTransport
from cardpush.infrastructure.link_directory import LinkDirectory
from cardpush.infrastructure.platform_client import PlatformClient
from tests.fixtures import BASE_URL, FakePlatform, StubCredentialProvider


@pytest.fixture
def fake_platform() -> FakePlatform:
    """In-memory platform with a fresh server key pair."""
    return FakePlatform()


@pytest.fixture
def credentials() -> StubCredentialProvider:
    return StubCredentialProvider()


@pytest.fixture
def http_transport(
    fake_platform: FakePlatform, credentials: StubCredentialProvider
) -> Generator[HttpTransport, None, None]:
    """Transport wired to the fake platform through httpx.MockTransport."""
    transport = HttpTransport(
        BASE_URL, credentials, timeout=5.0, transport=fake_platform.mock_transport()
    )
    yield transport
    transport.close()


@pytest.fixture
def link_directory(http_transport: HttpTransport) -> LinkDirectory:
    return LinkDirectory(http_transport)


@pytest.fixture
def platform_client(
    http_transport: HttpTransport, link_directory: LinkDirectory
) -> PlatformClient:
    return PlatformClient(http_transport, link_directory)


@pytest.fixture
def registration_service(
    platform_client: PlatformClient, credentials: StubCredentialProvider
) -> CardRegistrationService:
    return CardRegistrationService(platform_client, credentials)


@pytest.fixture
def card_data() -> CardData:
    """A complete test card."""
    return CardData(
        pan="4111111111111111",
        cvv="123",
        exp_month=12,
        exp_year=2030,
        name="Jane Doe",
        address=Address(
            street1="1200 E 151st St",
            city="Olathe",
            state="KS",
            postal_code="66062",
            country_code="US",
        ),
    )
