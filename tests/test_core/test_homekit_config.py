"""
Tests for HomeKit configuration and pairing codes
"""
import pytest
from unittest.mock import patch

from protect_motion.config.homekit import (
    INVALID_PIN_PATTERNS,
    HomekitConfig,
    generate_pincode,
    get_homekit_config,
    is_valid_pincode,
)


class TestHomekitConfig:
    """Tests for HomeKit configuration."""

    def test_default_config(self):
        config = HomekitConfig()
        assert config.enabled is True
        assert config.port == 51826
        assert config.bridge_name == "Protect Motion"
        assert config.persist_dir == "data/homekit"
        assert config.bind_address == "0.0.0.0"

    def test_persist_file_path(self):
        config = HomekitConfig(persist_dir="test/dir")
        assert config.persist_file == "test/dir/accessory.state"

    def test_ensure_persist_dir(self, tmp_path):
        config = HomekitConfig(persist_dir=str(tmp_path / "a" / "b"))
        config.ensure_persist_dir()
        assert (tmp_path / "a" / "b").is_dir()

    def test_from_settings(self):
        with patch("protect_motion.config.homekit.settings") as mock_settings:
            mock_settings.HOMEKIT_ENABLED = False
            mock_settings.HOMEKIT_PORT = 51900
            mock_settings.HOMEKIT_BRIDGE_NAME = "Garage Bridge"
            mock_settings.HOMEKIT_PERSIST_DIR = "/var/lib/bridge"
            mock_settings.HOMEKIT_PINCODE = "031-45-154"
            mock_settings.HOMEKIT_BIND_ADDRESS = "10.0.0.2"

            config = get_homekit_config()

        assert config.enabled is False
        assert config.port == 51900
        assert config.bridge_name == "Garage Bridge"
        assert config.pincode == "031-45-154"
        assert config.bind_address == "10.0.0.2"


class TestPincodeValidation:
    """Tests for pincode validation."""

    @pytest.mark.parametrize("code", sorted(INVALID_PIN_PATTERNS))
    def test_restricted_patterns_rejected(self, code):
        assert is_valid_pincode(code) is False

    @pytest.mark.parametrize("code", ["12345678", "12-345-678", "abc-de-fgh", "031-45-15"])
    def test_malformed_rejected(self, code):
        assert is_valid_pincode(code) is False

    def test_valid_code(self):
        assert is_valid_pincode("031-45-154") is True


class TestGeneratePincode:
    """Tests for pincode generation."""

    def test_pincode_format(self):
        for _ in range(10):
            code = generate_pincode()
            parts = code.split('-')
            assert [len(p) for p in parts] == [3, 2, 3]
            assert all(p.isdigit() for p in parts)

    def test_pincode_not_restricted(self):
        for _ in range(100):
            assert generate_pincode() not in INVALID_PIN_PATTERNS
