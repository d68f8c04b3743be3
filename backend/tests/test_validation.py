"""
dineAR Backend — Validation Unit Tests
=======================================

What:  Whitelist projection, batched violations, normalization and escaping,
       id parsing and pagination clamping.
"""

import uuid

import pytest

from dinear.exceptions import ValidationError
from dinear.schemas.auth import LoginRequest, SignupRequest
from dinear.schemas.dish import DishCreateForm, DishUpdateForm
from dinear.validation import clamp_pagination, parse_uuid, project, validate_payload


def _messages(exc: ValidationError) -> dict:
    return {d["field"]: d["message"] for d in exc.details}


class TestProjection:

    def test_undeclared_fields_are_dropped(self):
        payload = {"name": "Ramen", "owner_id": str(uuid.uuid4()), "id": "x"}
        assert project(payload, ["name", "plate_size"]) == {"name": "Ramen"}

    def test_empty_payload(self):
        assert project(None, ["name"]) == {}

    def test_owner_id_never_reaches_the_model(self):
        form = validate_payload(DishCreateForm, {"name": "Ramen", "owner_id": "someone-else"})
        assert not hasattr(form, "owner_id")


class TestSignupRules:

    def test_email_trimmed_and_lower_cased(self):
        data = validate_payload(SignupRequest, {"email": "  A@X.Com ", "password": "pass1234"})
        assert data.email == "a@x.com"

    def test_all_violations_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(SignupRequest, {"email": "not-an-email", "password": "short"})

        assert exc_info.value.message == "Validation failed"
        assert _messages(exc_info.value) == {
            "email": "Please provide a valid email address",
            "password": "Password must be between 8 and 128 characters",
        }

    def test_password_needs_letter_and_digit(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(SignupRequest, {"email": "a@x.com", "password": "onlyletters"})
        assert _messages(exc_info.value)["password"] == (
            "Password must contain at least one letter and one number"
        )

    def test_missing_fields_named(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(SignupRequest, {})
        assert _messages(exc_info.value) == {
            "email": "Email is required",
            "password": "Password is required",
        }

    def test_overlong_email(self):
        email = "a" * 250 + "@x.com"
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(SignupRequest, {"email": email, "password": "pass1234"})
        assert _messages(exc_info.value)["email"] == "Email must be less than 255 characters"


class TestLoginRules:

    def test_any_nonempty_password_accepted(self):
        data = validate_payload(LoginRequest, {"email": "a@x.com", "password": "x"})
        assert data.password == "x"

    def test_empty_password(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(LoginRequest, {"email": "a@x.com", "password": ""})
        assert _messages(exc_info.value)["password"] == "Password is required"


class TestDishRules:

    def test_defaults_plate_size_to_medium(self):
        assert validate_payload(DishCreateForm, {"name": "Ramen"}).plate_size == "medium"

    def test_name_is_trimmed_and_escaped(self):
        form = validate_payload(DishCreateForm, {"name": "  <b>Fish & Chips</b> "})
        assert form.name == "&lt;b&gt;Fish &amp; Chips&lt;/b&gt;"

    def test_plate_size_case_insensitive(self):
        assert validate_payload(DishCreateForm, {"name": "Ramen", "plate_size": "LARGE"}).plate_size == "large"

    def test_bad_plate_size_and_long_name_batched(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(DishCreateForm, {"name": "x" * 101, "plate_size": "huge"})
        assert _messages(exc_info.value) == {
            "name": "Dish name must be between 1 and 100 characters",
            "plate_size": "Plate size must be small, medium, or large",
        }

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(DishCreateForm, {"name": "   "})
        assert _messages(exc_info.value)["name"] == "Dish name is required"

    def test_extra_violations_merged(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(
                DishCreateForm,
                {"plate_size": "medium"},
                extra_violations=[{"field": "image", "message": "Dish image is required"}],
            )
        assert _messages(exc_info.value) == {
            "name": "Name is required",
            "image": "Dish image is required",
        }

    def test_update_all_optional(self):
        form = validate_payload(DishUpdateForm, {})
        assert form.name is None and form.plate_size is None


class TestIdsAndPagination:

    def test_parse_uuid(self):
        value = uuid.uuid4()
        assert parse_uuid(str(value)) == value

    def test_parse_uuid_rejects_garbage(self):
        with pytest.raises(ValidationError, match="Invalid ID format"):
            parse_uuid("abc")

    @pytest.mark.parametrize(
        "page, limit, expected",
        [
            (None, None, (1, 20)),
            (0, 0, (1, 1)),
            (None, 0, (1, 1)),
            (0, None, (1, 20)),
            (1, -5, (1, 1)),
            (-3, 5, (1, 5)),
            (2, 1000, (2, 100)),
            (3, 50, (3, 50)),
        ],
    )
    def test_clamp_pagination(self, page, limit, expected):
        assert clamp_pagination(page, limit, max_limit=100) == expected
