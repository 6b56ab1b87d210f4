import pytest

from origin_proxy.utils_tests.backend_mock import RecordingBackend


@pytest.fixture
def recording_backend():
    """Backend recording requests and answering 200 "ok" unless told otherwise."""
    return RecordingBackend()
