"""
Decisioning client bootstrap.

Imports the client module off the event loop, lets it take over the shim through
its install(shim, page) hook, then issues the one-time `configure` command.
Resolves only after configuration; any failure surfaces as BootstrapError, and
every call already routed through the shim is rejected with that same error.
"""

from __future__ import annotations

import asyncio
import importlib
import time
from typing import Any, Dict, Optional

from ops.ops_events import log_bootstrap_failed, log_bootstrap_ok, log_bootstrap_start
from page.document import Page
from personalization.command_buffer import ClientShim, get_client_shim
from personalization.errors import BootstrapError


async def bootstrap(
    module_path: str,
    config: Dict[str, Any],
    *,
    page: Page,
    shim: Optional[ClientShim] = None,
) -> None:
    shim = shim if shim is not None else get_client_shim()
    t_start = log_bootstrap_start(module_path)
    try:
        module = await asyncio.to_thread(importlib.import_module, module_path)
        install = getattr(module, "install", None)
        if not callable(install):
            raise BootstrapError(f"{module_path} does not provide install(shim, page)")
        install(shim, page)
        if not shim.ready:
            raise BootstrapError(f"{module_path} did not attach a client")
        await shim("configure", config)
    except BootstrapError as e:
        log_bootstrap_failed(module_path, str(e))
        shim.fail(e)
        raise
    except Exception as e:
        log_bootstrap_failed(module_path, f"{type(e).__name__}: {e!s}")
        error = BootstrapError(f"failed to bootstrap {module_path}: {e!s}")
        shim.fail(error)
        raise error from e
    log_bootstrap_ok(module_path, time.perf_counter() - t_start)
