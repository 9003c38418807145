from __future__ import annotations

import importlib.util
import logging
import os
import sys
from typing import Callable

_APP: Callable | None = None


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _load_app() -> Callable:
    """
    Serverless entrypoint: import backend/api.py by path so its top-level
    imports (db, repos, ...) resolve against this directory, then build the
    Flask app once per warm container.
    """
    global _APP
    if _APP is not None:
        return _APP

    backend_root = os.path.dirname(__file__)
    if backend_root not in sys.path:
        sys.path.insert(0, backend_root)
    api_path = os.path.join(backend_root, "api.py")
    module_spec = importlib.util.spec_from_file_location("dorothy_api", api_path)
    if module_spec is None or module_spec.loader is None:
        raise RuntimeError("Unable to load backend api.py")
    module = importlib.util.module_from_spec(module_spec)
    sys.modules["dorothy_api"] = module
    module_spec.loader.exec_module(module)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    # Cold starts skip the schema ping; seeding is opt-in.
    _APP = module.create_app(init_db=False, seed_concepts=_env_flag("SEED_CONCEPTS_ON_START"))
    return _APP


def app(environ, start_response):
    return _load_app()(environ, start_response)
