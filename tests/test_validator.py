"""端点校验测试"""

import pytest

from share_dl.core.validator import ValidationManager
from share_dl.exceptions import ValidationError
from share_dl.models import Config


@pytest.fixture
def validator():
    return ValidationManager(Config())


class TestNormalizeEndpoint:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("http://phone.local:8080/", "http://phone.local:8080/"),
            ("http://phone.local:8080", "http://phone.local:8080/"),
            ("  https://10.0.0.5/share  ", "https://10.0.0.5/share/"),
            ("http://[::1]:8080/", "http://[::1]:8080/"),
        ],
    )
    def test_valid(self, validator, raw, expected):
        assert validator.normalize_endpoint(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "phone.local:8080",
            "ftp://phone.local/",
            "http:///nohost",
            "http://phone.local/?a=1",
            "http://phone.local/#frag",
            "http://phone local/",
            'http://phone.local/"x',
        ],
    )
    def test_invalid(self, validator, raw):
        with pytest.raises(ValidationError):
            validator.normalize_endpoint(raw)


class TestNormalizeEndpoints:
    def test_dedupes_in_order(self, validator):
        result = validator.normalize_endpoints(
            ["http://b.local", "http://a.local/", "http://b.local/", "", None]
        )
        assert result == ["http://b.local/", "http://a.local/"]

    def test_empty(self, validator):
        assert validator.normalize_endpoints([]) == []

    def test_invalid_entry_raises(self, validator):
        with pytest.raises(ValidationError):
            validator.normalize_endpoints(["http://a.local/", "gopher://b.local/"])
