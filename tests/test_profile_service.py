import pytest
from pydantic import ValidationError

from admindash.core.errors import BackendError, ErrorKind
from admindash.modules.users.schemas import ProfileUpdate, UserProfile, default_full_name
from admindash.modules.users.service import validate_image

from tests.fakes import access_denied

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestDefaults:
    @pytest.mark.parametrize("email,expected", [
        ("jane@x.com", "jane"),
        ("first.last@example.org", "first.last"),
        (None, "User"),
        ("", "User"),
    ])
    def test_default_full_name(self, email, expected):
        assert default_full_name(email) == expected

    def test_from_row_fills_blanks(self):
        profile = UserProfile.from_row({"full_name": "", "phone": ""}, "u-1", "jane@x.com")
        assert profile.full_name == "jane"
        assert profile.phone is None


class TestFetch:
    async def test_fetch(self, profile_service):
        row = await profile_service.fetch_profile("u-manager")
        assert row["full_name"] == "Max Manager"

    async def test_not_found(self, profile_service):
        with pytest.raises(BackendError) as exc_info:
            await profile_service.fetch_profile("u-missing")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_rls_block(self, db, profile_service):
        db.failures[("user_profiles", "select")] = access_denied()
        with pytest.raises(BackendError) as exc_info:
            await profile_service.fetch_profile("u-manager")
        assert exc_info.value.kind is ErrorKind.ACCESS_DENIED


class TestUpdate:
    async def test_updates_only_given_fields(self, db, profile_service):
        profile = await profile_service.update_profile(
            "u-manager", "max@example.com", ProfileUpdate(full_name="  Maxine  ")
        )

        assert profile.full_name == "Maxine"
        assert profile.phone == "555-0100"
        assert db.rows("user_profiles", id="u-manager")[0]["phone"] == "555-0100"

    @pytest.mark.parametrize("full_name", ["   ", None])
    def test_blank_or_null_name_rejected(self, full_name):
        with pytest.raises(ValidationError):
            ProfileUpdate(full_name=full_name)

    def test_name_may_be_omitted(self):
        assert ProfileUpdate(phone="555-0199").changes() == {"phone": "555-0199"}

    async def test_nothing_to_update(self, profile_service):
        with pytest.raises(BackendError) as exc_info:
            await profile_service.update_profile("u-manager", "max@example.com", ProfileUpdate())
        assert exc_info.value.kind is ErrorKind.VALIDATION

    async def test_missing_profile(self, profile_service):
        with pytest.raises(BackendError) as exc_info:
            await profile_service.update_profile("u-missing", None, ProfileUpdate(phone="1"))
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_write_failure(self, db, profile_service):
        db.failures[("user_profiles", "update")] = access_denied()
        with pytest.raises(BackendError) as exc_info:
            await profile_service.update_profile("u-manager", None, ProfileUpdate(phone="1"))
        assert exc_info.value.kind is ErrorKind.MUTATION_FAILED


class TestAvatar:
    def test_validation(self):
        with pytest.raises(BackendError, match="select an image"):
            validate_image(b"", "image/png")
        with pytest.raises(BackendError, match="valid image"):
            validate_image(b"%PDF", "application/pdf")
        with pytest.raises(BackendError, match="less than 5MB"):
            validate_image(b"\x00" * (5 * 1024 * 1024 + 1), "image/png")
        validate_image(PNG, "image/png")

    async def test_upload_returns_public_url(self, db, profile_service):
        url = await profile_service.upload_avatar("u-staff", "me.png", PNG, "image/png")

        assert "/object/public/user-avatars/avatars/u-staff-" in url
        assert url.endswith(".png")
        [(bucket, path)] = db.storage.files
        assert bucket == "user-avatars"
        assert url.endswith(path)

    async def test_upload_failure(self, db, profile_service):
        db.storage.upload_error = RuntimeError("bucket not found")
        with pytest.raises(BackendError) as exc_info:
            await profile_service.upload_avatar("u-staff", "me.png", PNG, "image/png")
        assert exc_info.value.kind is ErrorKind.MUTATION_FAILED

    async def test_remove_avatar(self, db, profile_service):
        url = await profile_service.upload_avatar("u-staff", "me.jpg", PNG, "image/jpeg")

        assert await profile_service.remove_avatar(url) is True
        assert db.storage.files == {}
        assert await profile_service.remove_avatar("https://gravatar.com/avatar/abc") is False
        assert await profile_service.remove_avatar(None) is False
