"""Tests for configuration validation."""

import pytest

from flpclean.config import (
    Config,
    InvalidConfigurationError,
    ScannerConfig,
    normalize_extensions,
    validate_scan_settings,
)


class TestValidateScanSettings:
    """Tests for validate_scan_settings function."""

    def test_defaults_are_valid(self):
        Config().validate()

    @pytest.mark.parametrize("threads", [0, -3])
    def test_rejects_non_positive_threads(self, threads):
        with pytest.raises(InvalidConfigurationError, match="thread count"):
            validate_scan_settings(None, threads, (".flp",))

    def test_rejects_negative_depth(self):
        with pytest.raises(InvalidConfigurationError, match="max depth"):
            validate_scan_settings(-1, 1, (".flp",))

    def test_accepts_zero_depth(self):
        validate_scan_settings(0, 1, (".flp",))

    def test_rejects_empty_extensions(self):
        with pytest.raises(InvalidConfigurationError):
            validate_scan_settings(None, None, ())

    def test_rejects_extension_without_dot(self):
        with pytest.raises(InvalidConfigurationError):
            validate_scan_settings(None, None, ("flp",))

    def test_rejects_bad_progress_interval(self):
        with pytest.raises(InvalidConfigurationError):
            ScannerConfig(progress_interval=0).validate()

    def test_is_a_value_error(self):
        assert issubclass(InvalidConfigurationError, ValueError)


class TestNormalizeExtensions:
    """Tests for normalize_extensions function."""

    def test_adds_dot_and_lowercases(self):
        assert normalize_extensions(["FLP", ".Zip"]) == (".flp", ".zip")

    def test_removes_duplicates(self):
        assert normalize_extensions([".flp", "flp", ".FLP"]) == (".flp",)
