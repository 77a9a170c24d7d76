"""
Tests for SolutionClient SDK validation module.
"""

import pytest

from solutionclient.exceptions import SolutionClientError
from solutionclient.validation import (
    InputValidationError,
    validate_dict,
    validate_list,
    validate_non_negative,
    validate_positive_int,
    validate_positive_number,
    validate_ratio,
    validate_required,
    validate_solution_create,
    validate_url,
    validate_violation_ids,
)


class TestExceptionInheritance:
    """Tests that InputValidationError is an SDK error."""

    def test_inherits_from_sdk_error(self):
        assert issubclass(InputValidationError, SolutionClientError)

    def test_carries_field_and_value(self):
        error = InputValidationError("bad", field="x", value=3)
        assert error.field == "x"
        assert error.value == 3
        assert error.status_code is None


class TestValidateRequired:
    """Tests for validate_required function."""

    def test_none_value_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_required(None, "field")
        assert "field is required" in str(exc.value)
        assert exc.value.field == "field"

    def test_empty_string_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_required("", "field")
        assert "cannot be empty" in str(exc.value)

    def test_whitespace_only_raises(self):
        with pytest.raises(InputValidationError):
            validate_required("   ", "field")

    def test_valid_string_passes(self):
        validate_required("value", "field")

    def test_zero_passes(self):
        validate_required(0, "field")


class TestValidateUrl:
    """Tests for validate_url function."""

    def test_none_passes(self):
        validate_url(None, "url")

    def test_https_url_passes(self):
        validate_url("https://kai.example.com/hub/services/kai/api", "url")

    def test_localhost_with_port_passes(self):
        validate_url("http://localhost:8000/mcp", "url")

    def test_single_label_host_passes(self):
        validate_url("http://kai-api:8000", "url")

    def test_ip_address_passes(self):
        validate_url("http://127.0.0.1:8000/", "url")

    def test_missing_scheme_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_url("kai.example.com", "url")
        assert exc.value.field == "url"

    def test_other_scheme_raises(self):
        with pytest.raises(InputValidationError):
            validate_url("ftp://kai.example.com", "url")


class TestValidateNumbers:
    """Tests for the numeric range validators."""

    def test_positive_number_rejects_zero(self):
        with pytest.raises(InputValidationError):
            validate_positive_number(0, "timeout")

    def test_positive_number_rejects_bool(self):
        with pytest.raises(InputValidationError):
            validate_positive_number(True, "timeout")

    def test_positive_number_accepts_float(self):
        validate_positive_number(0.5, "timeout")

    def test_non_negative_accepts_zero(self):
        validate_non_negative(0, "backoff")

    def test_non_negative_rejects_negative(self):
        with pytest.raises(InputValidationError) as exc:
            validate_non_negative(-1, "backoff")
        assert "cannot be negative" in str(exc.value)

    def test_non_negative_rejects_nan(self):
        with pytest.raises(InputValidationError):
            validate_non_negative(float("nan"), "backoff")

    def test_positive_int_rejects_float(self):
        with pytest.raises(InputValidationError) as exc:
            validate_positive_int(1.5, "attempts")
        assert "must be an integer" in str(exc.value)

    def test_positive_int_rejects_zero(self):
        with pytest.raises(InputValidationError):
            validate_positive_int(0, "attempts")


class TestValidateRatio:
    """Tests for validate_ratio function."""

    def test_inside_interval_passes(self):
        validate_ratio(0.8, "ratio")

    def test_zero_raises(self):
        with pytest.raises(InputValidationError):
            validate_ratio(0, "ratio")

    def test_one_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_ratio(1, "ratio")
        assert "less than 1" in str(exc.value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_raises(self, value):
        with pytest.raises(InputValidationError) as exc:
            validate_ratio(value, "ratio")
        assert "finite" in str(exc.value)


class TestValidateCollections:
    """Tests for validate_list and validate_dict."""

    def test_list_none_passes(self):
        validate_list(None, "ids")

    def test_list_rejects_tuple(self):
        with pytest.raises(InputValidationError):
            validate_list((1, 2), "ids")

    def test_list_item_type(self):
        with pytest.raises(InputValidationError) as exc:
            validate_list([1, "2"], "ids", int)
        assert exc.value.field == "ids[1]"

    def test_list_rejects_bool_items(self):
        with pytest.raises(InputValidationError):
            validate_list([1, True], "ids", int)

    def test_dict_rejects_list(self):
        with pytest.raises(InputValidationError):
            validate_dict([], "incident")


class TestValidateViolationIds:
    """Tests for validate_violation_ids function."""

    def test_valid_ids_pass(self):
        validate_violation_ids(
            [{"ruleset_name": "eap7", "violation_name": "session-bean-001"}]
        )

    def test_empty_list_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_violation_ids([])
        assert exc.value.field == "violation_ids"

    def test_missing_violation_name_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_violation_ids([{"ruleset_name": "eap7"}])
        assert exc.value.field == "violation_ids[0].violation_name"

    def test_non_dict_item_raises(self):
        with pytest.raises(InputValidationError):
            validate_violation_ids(["eap7:session-bean-001"])


class TestValidateSolutionCreate:
    """Tests for validate_solution_create function."""

    def test_valid_parameters_pass(self):
        validate_solution_create([1, 2], "because", [7])

    def test_empty_incident_ids_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_solution_create([], "", [])
        assert exc.value.field == "incident_ids"

    def test_non_int_incident_id_raises(self):
        with pytest.raises(InputValidationError):
            validate_solution_create(["1"], "", [])

    def test_non_string_reasoning_raises(self):
        with pytest.raises(InputValidationError) as exc:
            validate_solution_create([1], 42, [])
        assert exc.value.field == "reasoning"

    def test_used_hint_ids_must_be_ints(self):
        with pytest.raises(InputValidationError):
            validate_solution_create([1], "", ["x"])
