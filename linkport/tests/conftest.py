import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

_ISOLATED_PREFIXES = ('LINKPORT_', 'SPOTIFY_', 'YOUTUBE_', 'SOUNDCLOUD_')


@pytest.fixture(autouse=True)
def _clear_linkport_env():
    """Ensure LINKPORT_* settings and platform credentials do not leak across tests.
    A developer .env or shell may set these variables; clear before each test
    and restore afterwards so tests explicitly setting them remain deterministic.
    """
    keys = [k for k in os.environ if k.startswith(_ISOLATED_PREFIXES)]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith(_ISOLATED_PREFIXES)]:
            os.environ.pop(k, None)
        os.environ.update({k: v for k, v in backup.items() if v is not None})


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Run each test from an empty directory so a local .env is never picked up."""
    monkeypatch.chdir(tmp_path)
