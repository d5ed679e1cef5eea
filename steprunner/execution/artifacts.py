"""
Screenshot capture and artifact storage.

Screenshots are taken from the live page and handed to an artifact store,
which returns an opaque key. The engine only threads that key through step
results and the execution record; it never reads the bytes back.
"""

import time
import uuid
from pathlib import Path
from typing import Optional

from ..core.config import Config
from ..core.exceptions import ArtifactStoreError
from ..core.logging_config import get_logger


class ArtifactStore:
    """Interface of the object store that keeps screenshot bytes."""

    def put_screenshot(self, execution_id: str, step_index: int, data: bytes) -> str:
        """Persist PNG bytes and return a stable storage key."""
        raise NotImplementedError


def build_screenshot_key(execution_id: str, step_index: int) -> str:
    timestamp = int(time.time() * 1000)
    return f"screenshots/{execution_id}/step-{step_index}-{timestamp}-{uuid.uuid4()}.png"


class LocalArtifactStore(ArtifactStore):
    """
    Artifact store backed by the local ``artifacts/`` directory.

    Keys are paths relative to ``config.artifacts_dir``.
    """

    def __init__(self, config: Config):
        self.root = Path(config.artifacts_dir)
        self.logger = get_logger(__name__)

    def put_screenshot(self, execution_id: str, step_index: int, data: bytes) -> str:
        key = build_screenshot_key(execution_id, step_index)
        path = self.root / key

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ArtifactStoreError(f"Screenshot upload failed: {e}", key=key) from e

        self.logger.debug(
            f"Stored screenshot: {key}",
            extra={"metadata": {"key": key, "size": len(data)}},
        )
        return key

    def resolve(self, key: str) -> Path:
        """Filesystem location of a stored key."""
        return self.root / key


class ScreenshotCapturer:
    """Takes full-page screenshots and stores them through an ``ArtifactStore``."""

    def __init__(self, store: ArtifactStore):
        self.store = store
        self.logger = get_logger(__name__)

    async def capture(self, page, execution_id: str, step_index: int) -> str:
        data = await page.screenshot(type="png", full_page=True)
        self.logger.debug(f"Screenshot captured: {len(data)} bytes")
        return self.store.put_screenshot(execution_id, step_index, data)

    async def capture_safe(
        self, page, execution_id: str, step_index: int
    ) -> Optional[str]:
        """Capture and store a screenshot, returning None instead of raising."""
        if page is None:
            return None

        try:
            return await self.capture(page, execution_id, step_index)
        except Exception as e:
            self.logger.warning(
                f"Screenshot capture failed (non-fatal): {e}",
                extra={"metadata": {"execution_id": execution_id, "step_index": step_index}},
            )
            return None
