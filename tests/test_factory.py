"""Unit tests for build_pipeline wiring."""

import pytest

from redactly.detectors.remote_detector import RemoteDetector
from redactly.factory import build_pipeline


@pytest.fixture(autouse=True)
def _no_ambient_credentials(monkeypatch):
    for name in ("OPENAI_API_KEY", "AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT", "OPENAI_API_VERSION"):
        monkeypatch.delenv(name, raising=False)


class TestBuildPipeline:
    def test_wires_detector_and_capacity(self):
        pipeline = build_pipeline(
            detection_api_url="http://detector:8080/",
            detection_timeout=30,
            openai_api_key="sk-test",
            max_sessions=5,
        )
        assert isinstance(pipeline.detector, RemoteDetector)
        assert pipeline.detector.endpoint == "http://detector:8080/process_document"
        assert pipeline.detection_timeout == 30
        assert pipeline.queue.capacity == 5

    def test_openai_suggestions_enabled_with_key(self):
        pipeline = build_pipeline(openai_api_key="sk-test", openai_model="gpt-4o-mini")
        assert pipeline.suggestions is not None
        assert pipeline.suggestions.suggester.deployment_name == "gpt-4o-mini"
        assert pipeline.suggestions.suggester.temperature is None

    def test_suggestions_disabled_without_key(self):
        assert build_pipeline(openai_api_key="").suggestions is None

    def test_azure_provider(self):
        pipeline = build_pipeline(
            provider="azure",
            azure_endpoint="https://example.openai.azure.com",
            api_key="azure-key",
            deployment_name="gpt4o-deploy",
            openai_temperature=0.3,
        )
        assert pipeline.suggestions.suggester.deployment_name == "gpt4o-deploy"
        assert pipeline.suggestions.suggester.temperature == 0.3

    def test_azure_without_credentials_disables_suggestions(self):
        assert build_pipeline(provider="azure").suggestions is None
