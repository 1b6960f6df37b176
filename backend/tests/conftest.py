# Ensure backend (and this directory, for the loadable test client modules) are on sys.path
import sys
from pathlib import Path

import pytest

_tests_dir = Path(__file__).resolve().parent
_backend = _tests_dir.parent
for _p in (str(_tests_dir), str(_backend)):
    if _p not in sys.path:
        sys.path.insert(0, _p)

import fake_decisioning  # noqa: E402
from core.config import Settings, get_settings  # noqa: E402
from personalization.command_buffer import reset_client_shim  # noqa: E402
from personalization.decisions import reset_applied_log  # noqa: E402

SAMPLE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Sample</title>
  <meta name="target" content="on">
  <meta name="template" content="Article Page">
</head>
<body>
  <header></header>
  <main>
    <div>
      <p><picture><img src="/media/hero.png" alt="" loading="lazy"></picture></p>
      <h1 id="title">Welcome</h1>
      <p><a href="/start">Get started</a></p>
    </div>
    <div>
      <div class="cards">
        <div><div>Card one</div></div>
        <div><div>Card two</div></div>
      </div>
      <h2 id="details">Details</h2>
    </div>
  </main>
  <footer></footer>
</body>
</html>
"""


@pytest.fixture(autouse=True)
def _fresh_page_session():
    """Each test is a new page session: no shim, no applied log, no cached settings."""
    reset_client_shim()
    reset_applied_log()
    fake_decisioning.reset()
    get_settings.cache_clear()
    yield
    reset_client_shim()
    reset_applied_log()
    fake_decisioning.reset()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        datastream_id="ds-test",
        org_id="ORG@AdobeOrg",
        decisioning_module="fake_decisioning",
        delayed_seconds=0.0,
    )


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML
