"""Tests for S3 artifact upload."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from k8stester.artifacts import S3ArtifactUploader
from k8stester.config.environment import EnvironmentConfig
from k8stester.core.errors import ProvisioningError


def mock_s3(mock_session_class):
    mock_client = AsyncMock()
    mock_client.put_object = AsyncMock(return_value={})

    mock_session = MagicMock()
    mock_session.client = MagicMock(
        return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=mock_client),
            __aexit__=AsyncMock(return_value=None),
        )
    )
    mock_session_class.return_value = mock_session
    return mock_client


@pytest.fixture
def config(tmp_path):
    config = EnvironmentConfig(name="art-env", region="eu-west-1", config_path=tmp_path / "config.yaml")
    config.status.resource("bucket").id = "art-bucket"
    config.sync()
    return config


class TestS3ArtifactUploader:
    @pytest.mark.asyncio
    @patch("k8stester.artifacts.aioboto3.Session")
    async def test_uploads_files_and_directories(self, mock_session_class, config, tmp_path):
        mock_client = mock_s3(mock_session_class)
        logs = tmp_path / "logs"
        (logs / "ng-1").mkdir(parents=True)
        (logs / "ng-1" / "kubelet.log").write_text("kubelet")

        uploader = S3ArtifactUploader(config, prefix="runs/")
        count = await uploader.upload_async([str(config.config_path), str(logs), ""])

        assert count == 2
        keys = [c.kwargs["Key"] for c in mock_client.put_object.call_args_list]
        assert keys == ["runs/art-env/config.yaml", "runs/art-env/logs/ng-1/kubelet.log"]
        assert all(c.kwargs["Bucket"] == "art-bucket" for c in mock_client.put_object.call_args_list)
        mock_session_class.assert_called_once_with(region_name="eu-west-1")

    @pytest.mark.asyncio
    @patch("k8stester.artifacts.aioboto3.Session")
    async def test_missing_paths_skipped(self, mock_session_class, config, tmp_path):
        mock_s3(mock_session_class)

        count = await S3ArtifactUploader(config).upload_async([str(tmp_path / "nope")])

        assert count == 0
        mock_session_class.assert_not_called()

    @patch("k8stester.artifacts.aioboto3.Session")
    def test_upload_error_wrapped(self, mock_session_class, config):
        mock_client = mock_s3(mock_session_class)
        mock_client.put_object = AsyncMock(side_effect=Exception("AccessDenied"))

        with pytest.raises(ProvisioningError, match="AccessDenied") as exc_info:
            S3ArtifactUploader(config).upload([str(config.config_path)])

        assert exc_info.value.step == "upload_artifacts"

    @patch("k8stester.artifacts.aioboto3.Session")
    def test_no_bucket_skips(self, mock_session_class, tmp_path):
        config = EnvironmentConfig(name="x", config_path=tmp_path / "config.yaml")

        S3ArtifactUploader(config).upload([str(tmp_path)])

        mock_session_class.assert_not_called()
