"""
Faults (faults/core.py, faults/http.py)

Tests the structured fault base and the declared HTTP exceptions.
"""

import pytest

from gantry.faults import (
    BadRequestException,
    Fault,
    FaultDomain,
    ForbiddenException,
    HttpException,
    InternalServerErrorException,
    NotFoundException,
    PayloadTooLargeException,
    PipeValidationError,
    Severity,
    ValidationError,
)


class TestFault:

    def test_constructor_fields(self):
        fault = Fault("ROUTE_CONFLICT", "Duplicate route", domain=FaultDomain.ROUTING)
        assert fault.code == "ROUTE_CONFLICT"
        assert str(fault) == "[ROUTE_CONFLICT] Duplicate route"
        assert fault.severity is Severity.ERROR
        assert fault.public is False

    def test_declared_on_subclass(self):
        class QuotaExceeded(Fault):
            code = "QUOTA_EXCEEDED"
            message = "Too many requests"
            domain = FaultDomain("billing")

        fault = QuotaExceeded(metadata={"limit": 10})
        assert fault.to_dict() == {
            "code": "QUOTA_EXCEEDED",
            "message": "Too many requests",
            "domain": "billing",
            "severity": "warn",
            "public": False,
            "metadata": {"limit": 10},
        }

    def test_missing_fields(self):
        with pytest.raises(TypeError, match="needs code, domain"):
            Fault(message="no code")

    def test_custom_domain_equality(self):
        assert FaultDomain("billing") == FaultDomain("billing")
        assert str(FaultDomain.SECURITY) == "security"


class TestHttpException:

    def test_defaults_from_status(self):
        error = NotFoundException()
        assert error.status == 404
        assert error.error == "Not Found"
        assert error.message == "Not Found"
        assert error.code == "NOT_FOUND"
        assert error.public is True

    def test_explicit_status(self):
        error = HttpException("Quota exceeded", 429)
        assert error.status == 429
        assert error.error == "Too Many Requests"

    def test_severity(self):
        assert InternalServerErrorException().severity is Severity.ERROR
        assert BadRequestException().severity is Severity.WARN

    def test_to_dict(self):
        data = ForbiddenException("Admins only", details={"role": "admin"}).to_dict()
        assert data["statusCode"] == 403
        assert data["error"] == "Forbidden"
        assert data["message"] == "Admins only"
        assert data["details"] == {"role": "admin"}
        assert "timestamp" in data

    def test_payload_too_large(self):
        assert PayloadTooLargeException().status == 413

    def test_validation_error(self):
        error = ValidationError("Bad input", fields=["email", "age"])
        assert error.status == 400
        assert error.error == "Validation Failed"
        assert error.fields == ["email", "age"]

    def test_pipe_validation_error(self):
        error = PipeValidationError("not an int", "id", status_code=422)
        assert isinstance(error, ValidationError)
        assert error.field == "id"
        assert error.fields == ["id"]
        assert error.status == 422
