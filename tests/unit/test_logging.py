"""
Unit Tests for logging setup
"""
import logging

from rehab_goals.utils import setup_logging
from rehab_goals.utils.logging import StructuredFormatter


def _own_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, "_rehab_goals", False)]


class TestSetupLogging:

    def test_reconfiguring_replaces_own_handlers(self, tmp_path):
        root = logging.getLogger()
        previous_level = root.level
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        try:
            setup_logging("DEBUG")
            setup_logging("WARNING", str(tmp_path / "goals.log"))

            assert len(_own_handlers()) == 2
            assert foreign in root.handlers
            assert root.level == logging.WARNING
        finally:
            for handler in _own_handlers():
                root.removeHandler(handler)
                handler.close()
            root.removeHandler(foreign)
            root.setLevel(previous_level)

    def test_plain_formatter_has_no_colour_codes(self):
        record = logging.LogRecord("rehab_goals.test", logging.INFO, __file__, 1, "goal m-1 completed", None, None)
        line = StructuredFormatter(use_color=False).format(record)

        assert "\033[" not in line
        assert "[rehab_goals.test] goal m-1 completed" in line
