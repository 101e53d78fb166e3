"""
tests.test_auth_service

Federated sign-in, logout and verification.
"""

from __future__ import annotations

import httpx
import pytest

from conftest import FakeClock, FakeVerifier, google_identity
from detector_gateway.errors import AuthenticationFailedError, MalformedRequestError
from detector_gateway.identity.google import GoogleTokenInfoVerifier, InvalidAssertion
from detector_gateway.services.auth_service import AuthService
from detector_gateway.services.maintenance import MaintenanceWorker


def _verifier() -> FakeVerifier:
    return FakeVerifier(
        {
            "good-assertion": google_identity("google-sub-1", "alice@example.com"),
            "foreign-assertion": google_identity(
                "google-sub-2", "eve@example.com", audience="someone-else.apps.googleusercontent.com"
            ),
        }
    )


@pytest.mark.asyncio
async def test_sign_in_creates_then_reuses_identity(settings, clock: FakeClock, session) -> None:
    svc = AuthService(session=session, settings=settings, verifier=_verifier(), clock=clock)

    first = await svc.sign_in("good-assertion")
    clock.advance(hours=1)
    second = await svc.sign_in("good-assertion")

    assert first.is_new_user is True
    assert second.is_new_user is False
    assert first.identity.id == second.identity.id
    assert second.identity.last_authenticated_at > second.identity.created_at

    claims = await svc.verify(f"Bearer {second.token}")
    assert claims.subject == str(first.identity.id)
    assert claims.email == "alice@example.com"


@pytest.mark.asyncio
async def test_last_authenticated_never_moves_backwards(settings, clock: FakeClock, session) -> None:
    svc = AuthService(session=session, settings=settings, verifier=_verifier(), clock=clock)
    first = await svc.sign_in("good-assertion")
    stamp = first.identity.last_authenticated_at

    clock.advance(minutes=-10)
    second = await svc.sign_in("good-assertion")

    assert second.identity.last_authenticated_at == stamp


@pytest.mark.asyncio
@pytest.mark.parametrize("assertion", ["forged-assertion", "foreign-assertion"])
async def test_sign_in_rejects_bad_assertions(settings, clock, session, assertion: str) -> None:
    svc = AuthService(session=session, settings=settings, verifier=_verifier(), clock=clock)

    with pytest.raises(AuthenticationFailedError):
        await svc.sign_in(assertion)


@pytest.mark.asyncio
async def test_sign_in_requires_assertion(settings, clock, session) -> None:
    svc = AuthService(session=session, settings=settings, verifier=_verifier(), clock=clock)

    with pytest.raises(MalformedRequestError):
        await svc.sign_in("   ")


@pytest.mark.asyncio
async def test_logout_revokes_and_schedules_cleanup(settings, clock, session, sessionmaker) -> None:
    worker = MaintenanceWorker(sessionmaker=sessionmaker)
    worker.start()
    try:
        svc = AuthService(
            session=session, settings=settings, verifier=_verifier(), worker=worker, clock=clock
        )
        token = (await svc.sign_in("good-assertion")).token

        await svc.logout(f"Bearer {token}")
        await worker.join()

        with pytest.raises(AuthenticationFailedError):
            await svc.verify(f"Bearer {token}")
        # A revoked token cannot log out twice.
        with pytest.raises(AuthenticationFailedError):
            await svc.logout(f"Bearer {token}")
    finally:
        await worker.stop()


@pytest.mark.asyncio
async def test_email_bound_to_other_subject_is_rejected(settings, clock, session) -> None:
    verifier = FakeVerifier(
        {
            "original": google_identity("google-sub-1", "alice@example.com"),
            "impostor": google_identity("google-sub-9", "alice@example.com"),
        }
    )
    svc = AuthService(session=session, settings=settings, verifier=verifier, clock=clock)
    await svc.sign_in("original")

    with pytest.raises(AuthenticationFailedError):
        await svc.sign_in("impostor")


@pytest.mark.asyncio
async def test_google_tokeninfo_verifier(settings) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["id_token"] = request.url.params["id_token"]
        if request.url.params["id_token"] != "good":
            return httpx.Response(400, json={"error": "invalid_token"})
        return httpx.Response(
            200,
            json={
                "sub": "1234567890",
                "email": "Alice@Example.com",
                "name": "Alice",
                "picture": "https://lh3.example.com/a.png",
                "aud": settings.google_client_id,
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        verifier = GoogleTokenInfoVerifier(settings=settings, http=http)
        assertion = await verifier.verify("good")
        with pytest.raises(InvalidAssertion):
            await verifier.verify("bad")

    assert seen["id_token"] == "bad"
    assert assertion.subject == "1234567890"
    assert assertion.email == "alice@example.com"
    assert assertion.audience == settings.google_client_id
