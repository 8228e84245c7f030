from datetime import datetime

import pytest
import pytz

from services.auth.auth_manager import AuthManager
from services.auth.exceptions import InvalidCredentialsError, InvalidSecretFormat
from services.auth.security import verify_password


@pytest.fixture
def auth_manager(test_settings, db_manager):
    return AuthManager(test_settings, db_manager)


@pytest.mark.asyncio
async def test_register_creates_then_updates(auth_manager, totp_secret):
    assert await auth_manager.register("AB1234", "first-pass", totp_secret) == "created"
    created = await auth_manager.get_user("AB1234")

    assert await auth_manager.register("AB1234", "second-pass", totp_secret) == "updated"
    updated = await auth_manager.get_user("AB1234")

    assert await auth_manager.count_users() == 1
    assert updated.password_hash != "second-pass"
    assert verify_password("second-pass", updated.password_hash)
    assert not verify_password("first-pass", updated.password_hash)
    assert updated.hash_key != created.hash_key
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_register_rejects_invalid_secret(auth_manager):
    with pytest.raises(InvalidSecretFormat):
        await auth_manager.register("AB1234", "pass", "not-base32!")
    assert await auth_manager.get_user("AB1234") is None


@pytest.mark.asyncio
async def test_verify_credentials_accepts_matching_triple(auth_manager, totp_secret):
    await auth_manager.register("AB1234", "secret-pass", totp_secret)

    user = await auth_manager.verify_credentials("AB1234", "secret-pass", totp_secret)
    assert user.user_id == "AB1234"

    # Secrets compare after normalisation
    spaced = " ".join(totp_secret.lower()[i:i + 4] for i in range(0, len(totp_secret), 4))
    await auth_manager.verify_credentials("AB1234", "secret-pass", spaced)


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id, password, secret", [
    ("UNKNOWN", "secret-pass", "JBSWY3DPEHPK3PXP"),
    ("AB1234", "wrong-pass", "JBSWY3DPEHPK3PXP"),
    ("AB1234", "secret-pass", "GEZDGNBVGY3TQOJQ"),
])
async def test_verify_credentials_rejects_mismatch(auth_manager, totp_secret, user_id, password, secret):
    await auth_manager.register("AB1234", "secret-pass", totp_secret)

    with pytest.raises(InvalidCredentialsError) as exc_info:
        await auth_manager.verify_credentials(user_id, password, secret)
    assert exc_info.value.message == "Invalid credentials"
    assert exc_info.value.status_code == 401


def test_verify_password_handles_garbage_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


@pytest.mark.asyncio
async def test_timestamps_follow_configured_timezone(test_settings, db_manager, totp_secret):
    test_settings.timezone = "Etc/GMT-14"
    auth_manager = AuthManager(test_settings, db_manager)

    await auth_manager.register("AB1234", "secret-pass", totp_secret)
    user = await auth_manager.get_user("AB1234")

    tz = pytz.timezone("Etc/GMT-14")
    stored = tz.localize(datetime.strptime(user.created_at, "%Y-%m-%d %H:%M:%S"))
    assert abs((datetime.now(tz) - stored).total_seconds()) < 60
