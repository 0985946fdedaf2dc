"""
PeakStreak Backend: Account Service Unit Tests
===============================================

What we test:
    ✅ Sign-up hashes the password and returns a sanitized user
    ✅ Duplicate username / email → DUPLICATE_* with no second row
    ✅ Login by username or email; one error for unknown user and wrong
       password, with the dummy hash verified for unknown users
    ✅ Search: blank query short-circuits, matching is case-insensitive
    ✅ Avatar: size and MIME type validation, old blob removed on success,
       new blob removed when the database write fails
    ✅ Account deletion removes the user and the avatar blob
"""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_user
from peakstreak.exceptions import ErrorKind, PeakStreakError
from peakstreak.services.account_service import AccountService, detect_image_extension


def _service(gateway, hasher, blob_store, max_avatar_size=2_097_152):
    return AccountService(gateway, hasher, blob_store, max_avatar_size=max_avatar_size)


class TestSignUp:

    @pytest.mark.asyncio
    async def test_create_user_hashes_password(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)

        user = await service.create_user("alice", "alice@example.com", "correct horse")

        assert user.hashed_password is None
        stored = gateway.users[user.id]
        assert stored.hashed_password != "correct horse"
        assert await hasher.verify("correct horse", stored.hashed_password)

    @pytest.mark.asyncio
    async def test_duplicate_username_is_rejected(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)
        await service.create_user("alice", "alice@example.com", "password1")

        with pytest.raises(PeakStreakError) as exc_info:
            await service.create_user("alice", "other@example.com", "password2")

        assert exc_info.value.kind is ErrorKind.DUPLICATE_USERNAME
        assert [u.username for u in gateway.users.values()] == ["alice"]

    @pytest.mark.asyncio
    async def test_duplicate_email_is_rejected(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)
        await service.create_user("alice", "alice@example.com", "password1")

        with pytest.raises(PeakStreakError) as exc_info:
            await service.create_user("alice2", "alice@example.com", "password2")

        assert exc_info.value.kind is ErrorKind.DUPLICATE_EMAIL


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_by_username_and_by_email(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)
        created = await service.create_user("alice", "alice@example.com", "password1")

        by_name = await service.login_user("alice", "password1")
        by_email = await service.login_user("alice@example.com", "password1")

        assert by_name.id == by_email.id == created.id
        assert by_name.hashed_password is None

    @pytest.mark.asyncio
    async def test_unknown_user_and_wrong_password_look_the_same(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)
        await service.create_user("alice", "alice@example.com", "password1")

        with pytest.raises(PeakStreakError) as wrong_password:
            await service.login_user("alice", "password2")
        with pytest.raises(PeakStreakError) as unknown_user:
            await service.login_user("mallory", "password1")

        assert wrong_password.value.kind is ErrorKind.INVALID_CREDENTIALS
        assert unknown_user.value.kind is ErrorKind.INVALID_CREDENTIALS
        assert wrong_password.value.message == unknown_user.value.message

    @pytest.mark.asyncio
    async def test_unknown_user_still_pays_for_a_hash_check(self, gateway, blob_store):
        hasher = MagicMock()
        hasher.burn = AsyncMock()
        hasher.verify = AsyncMock()
        service = _service(gateway, hasher, blob_store)

        with pytest.raises(PeakStreakError):
            await service.login_user("mallory", "password1")

        hasher.burn.assert_awaited_once_with("password1")
        hasher.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gateway_outage_is_not_reported_as_bad_credentials(self, mock_gateway, hasher, blob_store):
        mock_gateway.get_user_by_identifier.side_effect = ConnectionError("db down")
        service = _service(mock_gateway, hasher, blob_store)

        with pytest.raises(PeakStreakError) as exc_info:
            await service.login_user("alice", "password1")

        assert exc_info.value.kind is ErrorKind.INTERNAL


class TestLookup:

    @pytest.mark.asyncio
    async def test_blank_search_does_not_query(self, mock_gateway, hasher, blob_store):
        service = _service(mock_gateway, hasher, blob_store)

        assert await service.search_users("   ") == []
        mock_gateway.search_users_by_username.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_and_sorted(self, gateway, hasher, blob_store):
        for name in ("zoe", "Alice", "malice", "bob"):
            await gateway.create_user(make_user(name))
        service = _service(gateway, hasher, blob_store)

        result = await service.search_users("ALI")

        assert [u.username for u in result] == ["Alice", "malice"]

    @pytest.mark.asyncio
    async def test_get_user_by_username_is_sanitized(self, gateway, hasher, blob_store):
        await gateway.create_user(make_user("alice", hashed_password="hash"))
        service = _service(gateway, hasher, blob_store)

        user = await service.get_user_by_username("alice")

        assert user.hashed_password is None


class TestAvatar:

    def test_mime_detection(self, png_bytes, jpeg_bytes):
        assert detect_image_extension(png_bytes) == ".png"
        assert detect_image_extension(jpeg_bytes) == ".jpg"
        assert detect_image_extension(b"GIF89a\x01\x00\x01\x00\x00\x00\x00;") is None
        assert detect_image_extension(b"%PDF-1.7\n") is None
        assert detect_image_extension(b"") is None

    def test_detection_uses_libmagic_mime_type(self):
        with patch("peakstreak.services.account_service.magic.from_buffer", return_value="image/jpeg") as sniff:
            assert detect_image_extension(b"anything") == ".jpg"
        sniff.assert_called_once_with(b"anything", mime=True)

    @pytest.mark.asyncio
    async def test_extension_follows_content_not_filename(self, gateway, hasher, blob_store, png_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)

        locator = await service.update_avatar(user.id, "holiday.jpg", png_bytes)

        assert locator.endswith(".png")

    @pytest.mark.asyncio
    async def test_oversize_upload_is_rejected_before_saving(self, gateway, hasher, blob_store, png_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store, max_avatar_size=len(png_bytes) - 1)

        with pytest.raises(PeakStreakError) as exc_info:
            await service.update_avatar(user.id, "me.png", png_bytes)

        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert list(blob_store.base_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_non_image_is_rejected(self, gateway, hasher, blob_store):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)

        with pytest.raises(PeakStreakError) as exc_info:
            await service.update_avatar(user.id, "me.png", b"%PDF-1.7 not an image")

        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert gateway.users[user.id].avatar_url is None

    @pytest.mark.asyncio
    async def test_replacing_avatar_removes_old_blob(self, gateway, hasher, blob_store, png_bytes, jpeg_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)

        first = await service.update_avatar(user.id, "a.png", png_bytes)
        second = await service.update_avatar(user.id, "b.jpg", jpeg_bytes)

        assert first != second
        assert second.startswith("/uploads/avatars/") and second.endswith(".jpg")
        assert gateway.users[user.id].avatar_url == second
        assert [p.name for p in blob_store.base_path.iterdir()] == [second.rsplit("/", 1)[1]]

    @pytest.mark.asyncio
    async def test_database_failure_removes_new_blob(self, gateway, hasher, blob_store, png_bytes, jpeg_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)
        old = await service.update_avatar(user.id, "a.png", png_bytes)
        gateway.update_user_avatar = AsyncMock(side_effect=RuntimeError("write failed"))

        with pytest.raises(PeakStreakError) as exc_info:
            await service.update_avatar(user.id, "b.jpg", jpeg_bytes)

        assert exc_info.value.kind is ErrorKind.INTERNAL
        assert gateway.users[user.id].avatar_url == old
        assert [p.name for p in blob_store.base_path.iterdir()] == [old.rsplit("/", 1)[1]]

    @pytest.mark.asyncio
    async def test_old_blob_delete_failure_is_not_raised(self, gateway, hasher, png_bytes):
        user = await gateway.create_user(make_user("alice"))
        await gateway.update_user_avatar(user.id, "/uploads/avatars/old.png")
        blobs = MagicMock()
        blobs.save = AsyncMock(return_value="/uploads/avatars/new.png")
        blobs.delete = AsyncMock(side_effect=OSError("read-only filesystem"))
        service = _service(gateway, hasher, blobs)

        locator = await service.update_avatar(user.id, "me.png", png_bytes)

        assert locator == "/uploads/avatars/new.png"
        blobs.delete.assert_awaited_once_with("/uploads/avatars/old.png")


class TestDeleteUser:

    @pytest.mark.asyncio
    async def test_delete_user_removes_avatar_blob(self, gateway, hasher, blob_store, png_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)
        await service.update_avatar(user.id, "a.png", png_bytes)

        await service.delete_user(user.id)

        assert user.id not in gateway.users
        assert list(blob_store.base_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_avatar_blob(self, gateway, hasher, blob_store, png_bytes):
        user = await gateway.create_user(make_user("alice"))
        service = _service(gateway, hasher, blob_store)
        await service.update_avatar(user.id, "a.png", png_bytes)
        gateway.delete_user = AsyncMock(side_effect=RuntimeError("locked"))

        with pytest.raises(PeakStreakError):
            await service.delete_user(user.id)

        assert len(list(blob_store.base_path.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_user_is_not_found(self, gateway, hasher, blob_store):
        service = _service(gateway, hasher, blob_store)
        with pytest.raises(PeakStreakError) as exc_info:
            await service.delete_user(uuid.uuid4())
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
