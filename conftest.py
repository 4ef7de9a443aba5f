"""Pytest configuration."""

import sys
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

# Add project root to path for imports
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import artifact_uploader.utils.metrics as metrics_module  # noqa: E402
from artifact_uploader.uploader import Destination, UploadTaskConfig  # noqa: E402


class FakePendingTransfer:
    """PendingTransfer that finishes immediately, or raises the given error."""

    def __init__(self, error=None):
        self.error = error

    def wait_for_completion(self):
        if self.error is not None:
            raise self.error


class FakeTransport:
    """In-memory transport recording every upload it receives."""

    def __init__(self, error=None):
        self.error = error
        self.uploads = []
        self.closed = False

    def upload(self, bucket, key, stream, metadata):
        self.uploads.append(
            {
                "bucket": bucket,
                "key": key,
                "body": stream.read(),
                "stream_name": getattr(stream, "name", None),
                "metadata": metadata,
            }
        )
        return FakePendingTransfer(self.error)

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_metrics(monkeypatch):
    """Fresh metrics collectors on a private registry for every test."""
    registry = CollectorRegistry()
    metrics = metrics_module.UploadMetrics(enabled=True, registry=registry)
    monkeypatch.setattr(metrics_module, "_metrics_instance", metrics)
    return metrics


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def transport_factory(fake_transport):
    def factory(credentials, region, proxy):
        return fake_transport

    return factory


@pytest.fixture
def source_dir(tmp_path):
    directory = tmp_path / "workspace"
    directory.mkdir()
    return directory


@pytest.fixture
def spill_dir(tmp_path):
    directory = tmp_path / "spill"
    directory.mkdir()
    return directory


@pytest.fixture
def report_file(source_dir):
    path = source_dir / "report.txt"
    path.write_bytes(b"abc")
    return path


@pytest.fixture
def make_task():
    def _make_task(**overrides):
        values = {
            "produced": True,
            "dest_filename": "out/report.txt",
            "bucket_name": "build-artifacts",
            "destination": Destination("build-artifacts", "jobs/42/report.txt"),
        }
        values.update(overrides)
        return UploadTaskConfig(**values)

    return _make_task


@pytest.fixture
def failing_factory():
    """Builds a transport factory whose transfers fail with the given error."""

    def _make(error):
        transport = FakeTransport(error=error)

        def factory(credentials, region, proxy):
            return transport

        return factory, transport

    return _make
