"""Tests for the card registration flow against the in-memory platform."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from cardpush.application.use_cases.key_exchange import begin_exchange
from cardpush.application.use_cases.registration import (
    CardRegistrationService,
    RegistrationAttempt,
    RegistrationState,
)
from cardpush.crypto.encryption import KeyDerivation, SharedSecret, card_to_bytes
from cardpush.crypto.keys import generate_ephemeral_key_pair
from cardpush.domain.entities import CardData
from cardpush.domain.errors import CardPushError, ErrorKind
from cardpush.infrastructure.http.http_client import HttpTransport
from cardpush.infrastructure.platform_client import PlatformClient
from tests.fixtures import (
    BASE_URL,
    DEEP_LINK,
    FakePlatform,
    StubCredentialProvider,
    error_response,
)


class TestRegisterCard:
    """End-to-end registration through the fake platform."""

    def test_returns_deep_link_and_submits_key_id(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService
    ) -> None:
        card = CardData(pan="4111111111111111", exp_month=12, exp_year=2030)

        result = registration_service.register_card(card)

        assert result.deep_link_url == DEEP_LINK
        assert result.push_id == "test"
        assert fake_platform.submitted_envelopes[0]["keyId"] == "k1"

    def test_platform_decrypts_exact_card_bytes(
        self,
        fake_platform: FakePlatform,
        registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        registration_service.register_card(card_data)
        assert fake_platform.decrypted_cards == [card_to_bytes(card_data)]

    def test_card_data_never_sent_in_clear(
        self,
        fake_platform: FakePlatform,
        registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        registration_service.register_card(card_data)
        for request in fake_platform.requests:
            assert card_data.pan.encode() not in request.content
            assert card_data.cvv.encode() not in request.content

    def test_raw_key_derivation(
        self, credentials: StubCredentialProvider, card_data: CardData
    ) -> None:
        platform = FakePlatform(kdf=KeyDerivation.RAW)
        with HttpTransport(
            BASE_URL, credentials, transport=platform.mock_transport()
        ) as transport:
            service = CardRegistrationService(
                PlatformClient(transport), credentials, KeyDerivation.RAW
            )
            service.register_card(card_data)
        assert platform.decrypted_cards == [card_to_bytes(card_data)]

    def test_each_attempt_uses_fresh_keys(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        registration_service.register_card(card_data)
        registration_service.register_card(card_data)
        first, second = fake_platform.client_public_keys
        assert first != second
        assert fake_platform.count("/") == 1

    def test_inactive_key_is_still_used(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.active = False
        result = registration_service.register_card(card_data)
        assert result.deep_link_url == DEEP_LINK

    def test_token_refresh_mid_flow(
        self,
        fake_platform: FakePlatform,
        registration_service: CardRegistrationService,
        credentials: StubCredentialProvider,
        card_data: CardData,
    ) -> None:
        """An expired token on submission is refreshed once and the call replayed."""
        fake_platform.queue("/paymentCards", error_response(401, "/paymentCards", "expired"))

        result = registration_service.register_card(card_data)

        assert result.deep_link_url == DEEP_LINK
        assert credentials.refresh_calls == 1

    def test_root_bad_gateway_surfaces_service_unavailable(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.queue("/", error_response(502, "/", "Bad Gateway"))

        with pytest.raises(CardPushError) as exc_info:
            registration_service.register_card(card_data)

        assert exc_info.value.kind is ErrorKind.SERVICE_UNAVAILABLE
        assert exc_info.value.status == 502
        assert fake_platform.submitted_envelopes == []

    def test_missing_key_id_is_malformed(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.queue(
            "/config/encryptionKeys",
            httpx.Response(200, json={"serverPublicKey": fake_platform.server_public_key_hex}),
        )

        with pytest.raises(CardPushError) as exc_info:
            registration_service.register_card(card_data)

        assert exc_info.value.kind is ErrorKind.MALFORMED_RESPONSE
        assert fake_platform.count("/paymentCards") == 0

    def test_off_curve_server_key_is_shared_secret_error(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.queue(
            "/config/encryptionKeys",
            httpx.Response(200, json={"serverPublicKey": "04" + "01" * 64, "keyId": "k1"}),
        )

        with pytest.raises(CardPushError) as exc_info:
            registration_service.register_card(card_data)

        assert exc_info.value.kind is ErrorKind.SHARED_SECRET

    def test_errors_never_mention_card_data(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.queue("/paymentCards", error_response(400, "/paymentCards", "Bad Request"))

        with pytest.raises(CardPushError) as exc_info:
            registration_service.register_card(card_data)

        assert card_data.pan not in str(exc_info.value)
        assert exc_info.value.status == 400

    def test_concurrent_registrations_are_independent(
        self, fake_platform: FakePlatform, registration_service: CardRegistrationService,
        card_data: CardData,
    ) -> None:
        fake_platform.rotate_key_ids = True

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(
                pool.map(lambda _: registration_service.register_card(card_data), range(4))
            )

        assert all(r.deep_link_url == DEEP_LINK for r in results)
        assert len(set(fake_platform.client_public_keys)) == 4
        assert sorted(e["keyId"] for e in fake_platform.submitted_envelopes) == [
            "k1-1", "k1-2", "k1-3", "k1-4"
        ]

    def test_health_check(self, registration_service: CardRegistrationService) -> None:
        assert registration_service.health_check().health_status == "OK"


class TestBeginExchange:
    """Test begin_exchange function."""

    def test_returns_live_key_pair_and_server_half(
        self, fake_platform: FakePlatform, platform_client: PlatformClient
    ) -> None:
        key_pair, exchange = begin_exchange(platform_client)
        assert not key_pair.discarded
        assert exchange.key_id == "k1"
        assert exchange.server_public_key.hex() == fake_platform.server_public_key_hex
        assert fake_platform.client_public_keys == [key_pair.public_key_bytes]

    def test_non_hex_server_key_is_malformed(
        self, fake_platform: FakePlatform, platform_client: PlatformClient
    ) -> None:
        fake_platform.queue(
            "/config/encryptionKeys",
            httpx.Response(200, json={"serverPublicKey": "zz", "keyId": "k1"}),
        )
        with pytest.raises(CardPushError) as exc_info:
            begin_exchange(platform_client)
        assert exc_info.value.kind is ErrorKind.MALFORMED_RESPONSE

    def test_unexpected_failure_discards_key_pair(
        self, platform_client: PlatformClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Keys are discarded even when the platform call fails outside the taxonomy."""
        generated = []

        def generate():
            key_pair = generate_ephemeral_key_pair()
            generated.append(key_pair)
            return key_pair

        def exchange_keys(client_public_key: str):
            raise RuntimeError("connection pool closed")

        monkeypatch.setattr(
            "cardpush.application.use_cases.key_exchange.generate_ephemeral_key_pair",
            generate,
        )
        monkeypatch.setattr(platform_client, "exchange_keys", exchange_keys)

        with pytest.raises(RuntimeError):
            begin_exchange(platform_client)

        assert len(generated) == 1
        assert generated[0].discarded

    def test_request_body_shape(
        self, fake_platform: FakePlatform, platform_client: PlatformClient
    ) -> None:
        begin_exchange(platform_client)
        request = [r for r in fake_platform.requests if r.method == "POST"][0]
        assert set(json.loads(request.content)) == {"clientPublicKey"}


class TestRegistrationAttempt:
    """Test the per-attempt state machine and key disposal."""

    def test_states_only_move_forward(self) -> None:
        attempt = RegistrationAttempt()
        attempt.advance(RegistrationState.TOKEN_READY)
        attempt.advance(RegistrationState.KEYS_EXCHANGED)
        with pytest.raises(RuntimeError):
            attempt.advance(RegistrationState.TOKEN_READY)
        with pytest.raises(RuntimeError):
            attempt.advance(RegistrationState.KEYS_EXCHANGED)

    def test_failure_is_terminal_and_disposes_keys(self) -> None:
        key_pair = generate_ephemeral_key_pair()
        secret = SharedSecret(b"\x01" * 32)

        with pytest.raises(CardPushError):
            with RegistrationAttempt() as attempt:
                attempt.key_pair = key_pair
                attempt.shared_secret = secret
                attempt.advance(RegistrationState.TOKEN_READY)
                raise CardPushError.api("boom", status=500)

        assert attempt.state is RegistrationState.FAILED
        assert key_pair.discarded
        assert secret.wiped
        with pytest.raises(RuntimeError):
            attempt.advance(RegistrationState.SUBMITTED)

    def test_success_disposes_keys(self) -> None:
        key_pair = generate_ephemeral_key_pair()
        with RegistrationAttempt() as attempt:
            attempt.key_pair = key_pair
            for state in list(RegistrationState)[1:-1]:
                attempt.advance(state)
        assert attempt.state is RegistrationState.DONE
        assert key_pair.discarded
