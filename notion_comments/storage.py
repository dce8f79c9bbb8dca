"""Durable processed-comment state.

The state file records, per page, the IDs of comments whose thread has been
finalized (answered, or skipped as self-authored/empty), plus the completion
time of the last poll cycle. It is loaded once at the start of a cycle and
written back once at the end.

Layout (state.json):
    {
        "lastPollTime": 1760000000000,
        "processedComments": {"<page id>": ["<comment id>", ...]}
    }
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Set, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)

STATE_FILENAME = "state.json"


class ProcessedState(BaseModel):
    """Processed comment IDs by page. IDs are only ever added.

    Attributes:
        last_poll_time: Epoch milliseconds of the last completed cycle (0 = never)
        processed_comments: Page ID -> comment IDs, in the order they were processed
    """
    model_config = ConfigDict(populate_by_name=True)

    last_poll_time: int = Field(default=0, alias="lastPollTime")
    processed_comments: Dict[str, List[str]] = Field(default_factory=dict, alias="processedComments")

    def processed_ids(self, page_id: str) -> Set[str]:
        return set(self.processed_comments.get(page_id, []))

    def is_processed(self, page_id: str, comment_id: str) -> bool:
        return comment_id in self.processed_comments.get(page_id, [])

    def mark_processed(self, page_id: str, comment_id: str) -> bool:
        """Record a comment as processed. Returns False if it already was."""
        if self.is_processed(page_id, comment_id):
            return False
        self.processed_comments.setdefault(page_id, []).append(comment_id)
        return True


class StateStore:
    """JSON file store for ProcessedState with atomic whole-file writes."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> ProcessedState:
        """Load state; a missing, unreadable or corrupt file yields a fresh state."""
        if not self.path.exists():
            logger.info("state_file_absent", path=str(self.path))
            return ProcessedState()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            state = ProcessedState.model_validate(data)
        except (OSError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            logger.warning("state_file_unreadable_starting_fresh", path=str(self.path), error=str(e))
            return ProcessedState()

        logger.debug(
            "state_loaded",
            path=str(self.path),
            page_count=len(state.processed_comments),
            last_poll_time=state.last_poll_time
        )
        return state

    def save(self, state: ProcessedState) -> None:
        """Overwrite the state file with the whole state.

        The JSON is written to a temporary file beside the target and renamed
        over it, so readers never observe a partially written file.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.model_dump(by_alias=True), ensure_ascii=False, indent=2)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug("state_saved", path=str(self.path), page_count=len(state.processed_comments))
