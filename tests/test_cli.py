"""Tests for CLI scripts."""

import importlib.util
import subprocess
import sys
from pathlib import Path

from artifact_uploader.utils.config import UploaderSettings

# Project paths
project_root = Path(__file__).parent.parent
scripts_dir = project_root / "scripts"
upload_script = scripts_dir / "upload.py"


def load_upload_module():
    module_spec = importlib.util.spec_from_file_location("upload_cli", upload_script)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def run_upload(*args, env=None):
    return subprocess.run(
        [sys.executable, str(upload_script), *args],
        capture_output=True,
        text=True,
        env=env,
    )


class TestUploadCLI:
    """Tests for upload.py CLI script."""

    def test_help_message(self):
        """Test that --help works."""
        result = run_upload("--help")

        assert result.returncode == 0
        assert "Upload one artifact to object storage" in result.stdout
        assert "--bucket" in result.stdout
        assert "--gzip" in result.stdout
        assert "--metadata" in result.stdout
        assert "--task" in result.stdout
        assert "--existing" in result.stdout

    def test_missing_required_args(self):
        """Test that a missing file argument returns an error."""
        result = run_upload()

        assert result.returncode != 0
        assert "required" in result.stderr.lower()

    def test_bucket_required_without_task(self, tmp_path):
        """Test that --bucket is required unless a task document is given."""
        artifact = tmp_path / "app.tar"
        artifact.write_bytes(b"payload")

        result = run_upload(str(artifact))

        assert result.returncode == 2
        assert "--bucket is required" in result.stderr

    def test_missing_task_document(self, tmp_path):
        """Test that a missing task document is a configuration error."""
        artifact = tmp_path / "app.tar"
        artifact.write_bytes(b"payload")

        result = run_upload(str(artifact), "--task", str(tmp_path / "missing.yaml"))

        assert result.returncode == 1
        assert "Configuration error" in result.stderr


class TestCLIIntegration:
    """Integration tests for CLI scripts."""

    def test_script_compiles(self):
        result = subprocess.run(
            [sys.executable, "-m", "py_compile", str(upload_script)],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, f"upload.py has syntax errors: {result.stderr}"

    def test_script_has_shebang(self):
        with open(upload_script, "r") as f:
            assert f.readline().strip() == "#!/usr/bin/env python3"


class TestBuildTask:
    """Tests for turning CLI arguments into an upload task."""

    def test_artifact_is_produced_by_default(self):
        cli = load_upload_module()
        args = cli.parse_args(["dist/app.tar", "--bucket", "build-artifacts"])

        task = cli.build_task(args, UploaderSettings())

        assert task.produced is True
        assert task.destination.object_name == "app.tar"
        assert task.dest_filename == "app.tar"

    def test_existing_flag_marks_artifact_not_produced(self):
        cli = load_upload_module()
        args = cli.parse_args(
            ["dist/app.tar", "--bucket", "build-artifacts", "--existing", "--key", "jobs/42/app.tar"]
        )

        task = cli.build_task(args, UploaderSettings())

        assert task.produced is False
        assert task.destination.object_name == "jobs/42/app.tar"
