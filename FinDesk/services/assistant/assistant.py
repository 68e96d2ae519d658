"""
Conversation orchestration against the OpenAI Assistants API.

Each dashboard user gets one thread, remembered in an in-process LRU cache.
A question is posted to the thread, a run is started on the chosen assistant,
and the run is polled at a fixed interval until it reaches a terminal status.
The reply is the newest assistant message on the thread.
"""
import logging
import time
from functools import lru_cache
from typing import Dict, List, Optional

import openai
from cachetools import LRUCache

from FinDesk.core.config import settings
from FinDesk.core.openai_client import get_openai_client
from FinDesk.services.vector_store.vector_store import (
    get_or_create_vector_store_ref,
    upload_lender_data,
)
from .assistant_context import render_context_message, validate_user_context
from .prompts import (
    ANALYTICS_INSTRUCTIONS,
    ANALYTICS_NAME,
    TERRANCE_INSTRUCTIONS,
    TERRANCE_NAME,
    THREAD_PRIMER,
)

logger = logging.getLogger(__name__)

# user id -> OpenAI thread id
threads: LRUCache[str, str] = LRUCache(maxsize=settings.thread_cache_size)

METRICS_KEYWORDS = ("vsc", "penetration", "deals", "performance", "products")
FAILED_RUN_STATUSES = {"failed", "cancelled", "expired", "incomplete", "requires_action"}
FILE_SEARCH_TOOL = {"type": "file_search"}


class AssistantError(RuntimeError):
    pass


class AssistantRunError(AssistantError):
    pass


class AssistantTimeout(AssistantError):
    pass


class AssistantService:
    def __init__(
        self,
        client,
        terrance_assistant_id: str = settings.terrance_assistant_id,
        analytics_assistant_id: Optional[str] = settings.analytics_assistant_id or None,
        poll_interval: float = settings.assistant_poll_interval,
        poll_timeout: float = settings.assistant_poll_timeout,
        thread_store: Optional[LRUCache] = None,
    ):
        self.client = client
        self.terrance_assistant_id = terrance_assistant_id
        self.analytics_assistant_id = analytics_assistant_id
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.threads = threads if thread_store is None else thread_store

    # ---------- threads ----------

    def get_thread_id(self, user_id: str) -> Optional[str]:
        return self.threads.get(user_id)

    def store_thread_id(self, user_id: str, thread_id: str):
        self.threads[user_id] = thread_id

    def clear_thread(self, user_id: str):
        self.threads.pop(user_id, None)

    def create_thread(self, vector_store_id: Optional[str] = None) -> str:
        kwargs = {}
        if vector_store_id:
            kwargs["tool_resources"] = {"file_search": {"vector_store_ids": [vector_store_id]}}
        thread = self.client.beta.threads.create(**kwargs)
        logger.info("Created thread %s", thread.id)
        return thread.id

    def get_or_create_thread(self, user_id: str, force_new: bool = False) -> str:
        """The user's thread; a new one starts with the metrics primer message."""
        if force_new:
            self.clear_thread(user_id)

        thread_id = self.get_thread_id(user_id)
        if thread_id:
            return thread_id

        thread_id = self.create_thread()
        self.store_thread_id(user_id, thread_id)
        self.post_message(thread_id, THREAD_PRIMER)
        return thread_id

    # ---------- runs ----------

    def select_assistant(self, query: str) -> str:
        lowered = query.lower()
        is_metrics_query = any(keyword in lowered for keyword in METRICS_KEYWORDS)
        if is_metrics_query and self.analytics_assistant_id:
            return self.analytics_assistant_id
        return self.terrance_assistant_id

    def post_message(self, thread_id: str, content: str):
        return self.client.beta.threads.messages.create(thread_id=thread_id, role="user", content=content)

    def run_and_wait(self, thread_id: str, assistant_id: str, tools: Optional[List[Dict]] = None):
        kwargs = {"thread_id": thread_id, "assistant_id": assistant_id}
        if tools:
            kwargs["tools"] = tools
        run = self.client.beta.threads.runs.create(**kwargs)

        started = time.monotonic()
        while True:
            run = self.client.beta.threads.runs.retrieve(thread_id=thread_id, run_id=run.id)

            if run.status == "completed":
                logger.info("Run %s completed on thread %s", run.id, thread_id)
                return run
            if run.status in FAILED_RUN_STATUSES:
                raise AssistantRunError(f"Run {run.status} with error: {run.last_error}")
            if time.monotonic() - started >= self.poll_timeout:
                raise AssistantTimeout(f"Run {run.id} still {run.status} after {self.poll_timeout}s")

            time.sleep(self.poll_interval)

    def latest_reply(self, thread_id: str) -> str:
        messages = self.client.beta.threads.messages.list(thread_id=thread_id, order="desc")
        for message in messages.data:
            if message.role != "assistant":
                continue
            for part in message.content:
                if getattr(part, "type", "text") == "text":
                    return part.text.value
        raise AssistantError("No response received from assistant")

    # ---------- public operations ----------

    def send_message(
        self,
        user_id: str,
        message: str,
        assistant_id: Optional[str] = None,
        vector_store_id: Optional[str] = None,
    ) -> str:
        if not user_id:
            raise AssistantError("User not authenticated")

        thread_id = self.get_thread_id(user_id)
        if not thread_id:
            thread_id = self.create_thread(vector_store_id)
            self.store_thread_id(user_id, thread_id)

        self.post_message(thread_id, message)
        self.run_and_wait(thread_id, assistant_id or self.terrance_assistant_id, tools=[FILE_SEARCH_TOOL])
        return self.latest_reply(thread_id)

    def send_message_with_context(self, user_id: str, query: str, context: Optional[Dict]) -> str:
        if not user_id:
            raise AssistantError("User not authenticated")

        try:
            thread_id = self.get_or_create_thread(user_id)
            assistant_id = self.select_assistant(query)

            content = query
            if context:
                content = render_context_message(validate_user_context(context), query)
                logger.info("Sending message with validated context")

            self.post_message(thread_id, content)
            self.run_and_wait(thread_id, assistant_id)
            return self.latest_reply(thread_id)
        except Exception as e:
            logger.exception("Error interacting with OpenAI")
            raise AssistantError("Failed to get response from assistant") from e

    def initialize_assistant(self, db, user_id: str) -> Dict:
        """Create or update Terrance with file search over the lender vector store."""
        store = get_or_create_vector_store_ref(db, user_id)
        vector_store_id = store["openaiId"]

        file_ids = [f for f in store.get("files", []) if not f.startswith("local_")]
        if not file_ids:
            logger.info("No files associated with vector store, uploading lender data")
            result = upload_lender_data(db, self.client, user_id)
            if result.get("fileId"):
                file_ids.append(result["fileId"])
        if not file_ids:
            logger.warning("No files to attach to the assistant")

        options = {
            "name": TERRANCE_NAME,
            "instructions": TERRANCE_INSTRUCTIONS,
            "model": settings.openai_assistant_model,
            "tools": [FILE_SEARCH_TOOL],
            "tool_resources": {"file_search": {"vector_store_ids": [vector_store_id]}},
        }

        try:
            self.client.beta.assistants.retrieve(self.terrance_assistant_id)
        except openai.NotFoundError:
            logger.info("Assistant %s not found, creating a new one", self.terrance_assistant_id)
            assistant = self.client.beta.assistants.create(**options)
            self.terrance_assistant_id = assistant.id
        else:
            logger.info("Updating existing assistant %s", self.terrance_assistant_id)
            assistant = self.client.beta.assistants.update(self.terrance_assistant_id, **options)

        logger.info("Terrance assistant setup complete: %s", assistant.id)
        return {"assistantId": assistant.id, "vectorStoreId": vector_store_id, "fileIds": file_ids}

    def create_analytics_assistant(self) -> str:
        assistant = self.client.beta.assistants.create(
            name=ANALYTICS_NAME,
            instructions=ANALYTICS_INSTRUCTIONS,
            model=settings.openai_assistant_model,
            tools=[],
        )
        self.analytics_assistant_id = assistant.id
        logger.info("Created analytics assistant %s", assistant.id)
        return assistant.id


@lru_cache(maxsize=1)
def get_assistant_service() -> AssistantService:
    return AssistantService(get_openai_client())
