import logging
import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _clear_youtube_env():
    """Ensure YOUTUBE_* settings from a developer .env or shell do not leak into tests."""
    keys = [k for k in os.environ if k.startswith('YOUTUBE_') or k.startswith('YTPROFILE_')]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith('YOUTUBE_') or k.startswith('YTPROFILE_')]:
            os.environ.pop(k, None)
        for k, v in backup.items():
            if v is not None:
                os.environ[k] = v


@pytest.fixture(autouse=True)
def _reset_ytprofile_logger():
    """Drop handlers installed by setup_logging() so they do not outlive the test."""
    yield
    logger = logging.getLogger('ytprofile')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
