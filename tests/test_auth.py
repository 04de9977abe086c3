"""Tests for Firebase ID token verification and user resolution"""

import base64
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID
from fastapi import HTTPException

from care_booking import auth

PROJECT = "care-booking-test"
KID = "test-key-1"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


@pytest.fixture(scope="module")
def signing_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, cert.public_bytes(serialization.Encoding.PEM).decode()


@pytest.fixture
def firebase(monkeypatch, signing_key):
    key, pem = signing_key
    monkeypatch.setattr(auth, "FIREBASE_PROJECT_ID", PROJECT)
    monkeypatch.setattr(auth, "_cached_keys", {KID: pem})

    def make_token(**claims) -> str:
        now = int(time.time())
        payload = {
            "aud": PROJECT,
            "iss": f"https://securetoken.google.com/{PROJECT}",
            "sub": "firebase-uid-1",
            "email": "pat@example.com",
            "iat": now,
            "exp": now + 3600,
        }
        payload.update(claims)
        header = _b64(json.dumps({"alg": "RS256", "kid": KID}).encode())
        body = _b64(json.dumps(payload).encode())
        signature = key.sign(f"{header}.{body}".encode(), padding.PKCS1v15(), hashes.SHA256())
        return f"{header}.{body}.{_b64(signature)}"

    return make_token


async def test_valid_token(firebase):
    claims = await auth.verify_firebase_token(firebase())
    assert claims["sub"] == "firebase-uid-1"


@pytest.mark.parametrize(
    "claims",
    [
        {"aud": "someone-else"},
        {"iss": "https://securetoken.google.com/someone-else"},
        {"exp": int(time.time()) - 10},
        {"iat": int(time.time()) + 3600},
    ],
)
async def test_rejected_claims(firebase, claims):
    with pytest.raises(HTTPException) as exc:
        await auth.verify_firebase_token(firebase(**claims))
    assert exc.value.status_code == 401


async def test_tampered_payload(firebase):
    header, _, signature = firebase().split(".")
    forged = _b64(json.dumps({"sub": "attacker", "aud": PROJECT}).encode())
    with pytest.raises(HTTPException) as exc:
        await auth.verify_firebase_token(f"{header}.{forged}.{signature}")
    assert exc.value.status_code == 401


async def test_malformed_token(firebase):
    with pytest.raises(HTTPException) as exc:
        await auth.verify_firebase_token("not-a-jwt")
    assert exc.value.status_code == 401


def test_resolve_user_creates_once(db):
    claims = {"sub": "firebase-uid-9", "email": "new@example.com", "name": "New Person"}
    first = auth.resolve_user(db, claims)
    second = auth.resolve_user(db, claims)
    assert first.id == second.id
    assert first.role == "client"


def test_resolve_user_email_taken(db, client_user):
    with pytest.raises(HTTPException) as exc:
        auth.resolve_user(db, {"sub": "another-uid", "email": client_user.email})
    assert exc.value.status_code == 409
