"""
Tests for logging setup.
"""

import pytest
from loguru import logger

from strata.utils.logger import get_logger, setup_logging


@pytest.fixture
def records():
    setup_logging(level="DEBUG")
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


@pytest.mark.unit
class TestCallContext:
    def test_extra_fields_lifted(self, records):
        get_logger("strata.engine").info(
            "Snapshot created", extra={"user_id": "user_1", "snapshot_id": "snap_1", "claims": 2}
        )

        extra = records[-1]["extra"]
        assert extra["user_id"] == "user_1"
        assert extra["claims"] == 2
        assert extra["module"] == "strata.engine"
        assert "extra" not in extra
        assert extra["context"] == " [user_id=user_1 snapshot_id=snap_1]"

    def test_no_context(self, records):
        get_logger("strata.store").debug("store ready")
        assert records[-1]["extra"]["context"] == ""

    def test_file_sink(self, tmp_path):
        setup_logging(
            level="INFO", log_to_file=True, log_dir=str(tmp_path / "logs"), compression=None, serialize=False
        )
        get_logger("strata.engine").info("written", extra={"user_id": "user_9"})
        logger.complete()
        # Removing the sinks closes the log file
        setup_logging(level="INFO")

        logged = "".join(p.read_text() for p in (tmp_path / "logs").glob("strata_*.log"))
        assert "written [user_id=user_9]" in logged
