"""
Tests for the settings model.
"""

import pytest
from pydantic import ValidationError

from ezvizinho.config.settings import Settings, settings


class TestSettings:
    def test_defaults(self):
        assert settings.ERROR_CODE_BATCH_SIZE == 100
        assert settings.DOC_BATCH_SIZE == 10
        assert settings.ERROR_CODES_TABLE_NAME == "ezviz_error_codes"
        assert settings.DOCUMENTATION_TABLE_NAME == "ezviz_documentation"

    def test_api_key_is_secret(self):
        assert "test-key" not in repr(settings)

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(GOOGLE_API_KEY="k", ERROR_CODE_BATCH_SIZE=0)

    def test_default_top_k_bounded(self):
        with pytest.raises(ValidationError):
            Settings(GOOGLE_API_KEY="k", DEFAULT_TOP_K=30, MAX_TOP_K=20)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DOC_BATCH_SIZE", "4")
        assert Settings().DOC_BATCH_SIZE == 4
