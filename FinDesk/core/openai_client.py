# FinDesk/core/openai_client.py
from functools import lru_cache

from openai import OpenAI

from FinDesk.core.config import settings


@lru_cache(maxsize=1)
def get_openai_client() -> OpenAI:
    """Shared OpenAI client used for assistants, threads, files and vector stores."""
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY not set")
    return OpenAI(api_key=settings.openai_api_key)
