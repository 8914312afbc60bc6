"""
Pipes (pipes.py)

Tests scalar parsing pipes and schema validation.
"""

import pytest

from gantry.controller.params import Param, ParamSource
from gantry.faults import PipeValidationError, ValidationError
from gantry.pipes import (
    ParseBoolPipe,
    ParseFloatPipe,
    ParseIntPipe,
    Pipe,
    ValidationPipe,
    ValidationRule,
)


class TestParseIntPipe:

    @pytest.mark.parametrize("value,expected", [("42", 42), (" 7 ", 7), (5, 5), ("-3", -3)])
    def test_parses(self, value, expected):
        assert ParseIntPipe().transform(value) == expected

    def test_radix(self):
        assert ParseIntPipe(radix=16).transform("ff") == 255

    @pytest.mark.parametrize("value", [None, ""])
    def test_required(self, value):
        with pytest.raises(PipeValidationError, match="Value is required for integer parsing"):
            ParseIntPipe().transform(value)

    def test_invalid(self):
        with pytest.raises(PipeValidationError, match="'abc' is not a valid integer"):
            ParseIntPipe().transform("abc")

    def test_bounds(self):
        pipe = ParseIntPipe(min=1, max=10)
        with pytest.raises(PipeValidationError, match="at least 1"):
            pipe.transform("0")
        with pytest.raises(PipeValidationError, match="not exceed 10"):
            pipe.transform("11")

    def test_field_from_metadata(self):
        descriptor = Param("id").describe(0, "id")
        with pytest.raises(PipeValidationError) as exc_info:
            ParseIntPipe().transform("x", descriptor)
        assert exc_info.value.field == "id"
        assert exc_info.value.status == 400
        assert isinstance(exc_info.value, ValidationError)


class TestParseFloatPipe:

    def test_parses_and_rounds(self):
        assert ParseFloatPipe(precision=2).transform("3.14159") == 3.14

    def test_invalid(self):
        with pytest.raises(PipeValidationError, match="not a valid number"):
            ParseFloatPipe().transform("pi")

    def test_nan_rejected(self):
        with pytest.raises(PipeValidationError):
            ParseFloatPipe().transform("nan")

    def test_bounds(self):
        with pytest.raises(PipeValidationError):
            ParseFloatPipe(max=1.0).transform("1.5")


class TestParseBoolPipe:

    @pytest.mark.parametrize("value", ["true", "1", "YES", "on", True, 1])
    def test_truthy(self, value):
        assert ParseBoolPipe().transform(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "Off", False, 0])
    def test_falsy(self, value):
        assert ParseBoolPipe().transform(value) is False

    def test_invalid(self):
        with pytest.raises(PipeValidationError, match="not a valid boolean"):
            ParseBoolPipe().transform("maybe")


class TestValidationPipe:

    schema = {
        "name": ValidationRule(required=True, type="string", min_length=2),
        "age": ValidationRule(type="number", min=0, max=150),
        "email": ValidationRule(pattern=r"^[^@]+@[^@]+$"),
    }

    def test_valid_drops_unknown(self):
        pipe = ValidationPipe(self.schema)
        result = pipe.transform({"name": "Ada", "age": 36, "extra": True})
        assert result == {"name": "Ada", "age": 36}

    def test_collects_all_errors(self):
        pipe = ValidationPipe(self.schema)
        with pytest.raises(PipeValidationError) as exc_info:
            pipe.transform({"name": "A", "age": 200, "email": "nope"})

        error = exc_info.value
        assert error.message.startswith("Validation failed: ")
        assert error.fields == ["name", "age", "email"]
        assert error.field == "name"

    def test_required(self):
        with pytest.raises(PipeValidationError, match="name is required"):
            ValidationPipe(self.schema).transform({})

    def test_type_mismatch(self):
        with pytest.raises(PipeValidationError, match="age must be a number"):
            ValidationPipe(self.schema).transform({"name": "Ada", "age": "old"})

    def test_without_whitelist_keeps_unknown(self):
        pipe = ValidationPipe(self.schema, whitelist=False)
        assert pipe.transform({"name": "Ada", "extra": 1}) == {"name": "Ada", "extra": 1}

    def test_transform_types(self):
        pipe = ValidationPipe({"age": ValidationRule(type="number")}, transform_types=True)
        assert pipe.transform({"age": "36"}) == {"age": 36.0}

    def test_forbid_non_whitelisted(self):
        pipe = ValidationPipe({"name": ValidationRule()}, forbid_non_whitelisted=True)
        with pytest.raises(PipeValidationError, match="Unknown property: admin"):
            pipe.transform({"name": "x", "admin": True})

    def test_custom_rule(self):
        pipe = ValidationPipe({"code": ValidationRule(custom=lambda v: v == "ok" or "code must be ok")})
        assert pipe.transform({"code": "ok"}) == {"code": "ok"}
        with pytest.raises(PipeValidationError, match="code must be ok"):
            pipe.transform({"code": "bad"})

    @pytest.mark.parametrize("value", [None, [1, 2], "text"])
    def test_non_object_rejected(self, value):
        with pytest.raises(PipeValidationError):
            ValidationPipe(self.schema).transform(value)

    def test_base_pipe_is_identity(self):
        assert Pipe().transform("same") == "same"
        assert Param("id").describe(0).source is ParamSource.PATH
