"""HTTP relay from uploaded webm recordings to the OpenAI transcription API.

Importing the package fills ``os.environ`` from ``server/.env`` and then from
``server/.env.local`` (developer overrides), so ``config.Settings`` sees those
values. Variables already exported in the process win over ``.env``.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

__version__ = "0.1.0"

SERVER_DIR = Path(__file__).resolve().parent.parent

for _name, _override in ((".env", False), (".env.local", True)):
    load_dotenv(SERVER_DIR / _name, override=_override)
