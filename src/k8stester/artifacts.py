from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Iterator, Sequence

import aioboto3
import structlog

from k8stester.config.environment import EnvironmentConfig
from k8stester.core.errors import ProvisioningError

logger = structlog.get_logger()


class S3ArtifactUploader:
    """Uploads run artifacts (config, hook output, node logs) to the environment bucket."""

    def __init__(
        self,
        config: EnvironmentConfig,
        region: str | None = None,
        prefix: str = "k8s-tester",
        log: Any = None,
    ) -> None:
        self._config = config
        self.region = region or config.region
        self.prefix = prefix.strip("/")
        self._log = log or logger

    @property
    def bucket(self) -> str:
        return self._config.status.resource("bucket").id

    def upload(self, paths: Sequence[str]) -> None:
        if not self.bucket:
            self._log.info("artifact_upload_skipped", reason="no bucket")
            return
        try:
            asyncio.run(self.upload_async(paths))
        except Exception as exc:
            raise ProvisioningError(
                f"artifact upload failed: {exc}", step="upload_artifacts"
            ) from exc

    async def upload_async(self, paths: Sequence[str]) -> int:
        """Upload every existing file under paths; returns the number of objects written."""
        files = list(_expand(paths))
        if not files:
            return 0

        session = aioboto3.Session(region_name=self.region)
        async with session.client("s3") as client:
            for local, relative in files:
                key = f"{self.prefix}/{self._config.name}/{relative}"
                await client.put_object(Bucket=self.bucket, Key=key, Body=local.read_bytes())
                self._log.debug("artifact_uploaded", bucket=self.bucket, key=key)

        self._log.info("artifacts_uploaded", bucket=self.bucket, count=len(files))
        return len(files)


def _expand(paths: Sequence[str]) -> Iterator[tuple[Path, str]]:
    for raw in paths:
        if not raw:
            continue
        path = Path(raw)
        if path.is_file():
            yield path, path.name
        elif path.is_dir():
            for child in sorted(p for p in path.rglob("*") if p.is_file()):
                yield child, f"{path.name}/{child.relative_to(path).as_posix()}"
