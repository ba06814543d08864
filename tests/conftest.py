"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from review_bot.config import Settings, merge_config
from review_bot.models import AnalysisContext, AnalyzableFile, Origin


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def settings():
    """Default settings, ignoring any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def make_settings(settings):
    """Build settings with structural overrides."""
    def _make(**override):
        return merge_config(settings, override)
    return _make


@pytest.fixture
def context():
    return AnalysisContext()


@pytest.fixture
def make_file():
    def _make(path, content, origin=Origin.COMMIT):
        return AnalyzableFile(path=path, content=content, origin=origin)
    return _make


@pytest.fixture
def secret_diff():
    """New JavaScript file with a hardcoded password and an eval call."""
    return (
        "diff --git a/integration_test.js b/integration_test.js\n"
        "new file mode 100644\n"
        "index 0000000..1111111\n"
        "--- /dev/null\n"
        "+++ b/integration_test.js\n"
        "@@ -0,0 +1,2 @@\n"
        '+var password = "123";\n'
        '+eval("console.log(1)");\n'
    )


@pytest.fixture
def secret_source():
    return 'var password = "123";\neval("console.log(1)");\n'
