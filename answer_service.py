"""Question answering: Watson Assistant first, OpenAI chat completions as the fallback."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ibm_cloud_sdk_core.authenticators import IAMAuthenticator
from ibm_watson import AssistantV2
from openai import OpenAI

logger = logging.getLogger(__name__)

WATSON_NG = "解釈できませんでした。申し訳ありませんが違う表現を試していただけますか。"
ANSWER_FAILED_TEXT = "失敗しました。再度試してください。"

CHAT_PROMPT = "以下の質問に対して日本語で回答をお願いします。{question}"
QUESTION_PROMPT = "以下のことについて教えてください。日本語で回答をお願いします。{question}"

WATSON_API_VERSION = "2023-06-15"


class WatsonAssistantClient:
    """Watson Assistant v2 bound to one assistant id."""

    def __init__(
        self,
        *,
        api_key: str,
        service_url: str,
        assistant_id: str,
        version: str = WATSON_API_VERSION,
        assistant: Optional[AssistantV2] = None,
    ) -> None:
        self.assistant_id = assistant_id
        if assistant is None:
            assistant = AssistantV2(version=version, authenticator=IAMAuthenticator(api_key))
            assistant.set_service_url(service_url)
        self.assistant = assistant

    def create_session(self) -> str:
        result = self.assistant.create_session(assistant_id=self.assistant_id).get_result()
        return result["session_id"]

    def message(self, session_id: str, text: str) -> Dict[str, Any]:
        return self.assistant.message(
            assistant_id=self.assistant_id,
            session_id=session_id,
            input={"message_type": "text", "text": text},
        ).get_result()


def extract_text_segments(watson_response: Dict[str, Any]) -> List[str]:
    generic = (watson_response.get("output") or {}).get("generic") or []
    return [item.get("text", "") for item in generic if item.get("response_type") == "text"]


class AnswerService:
    def __init__(
        self,
        *,
        watson: Optional[WatsonAssistantClient],
        openai_client: Optional[Any],
        model: str = "gpt-3.5-turbo",
    ) -> None:
        self.watson = watson
        self.client = openai_client
        self.model = model

    @classmethod
    def from_settings(cls, settings) -> "AnswerService":
        watson = None
        if settings.watson_api_key and settings.watson_url and settings.watson_assistant_id:
            watson = WatsonAssistantClient(
                api_key=settings.watson_api_key,
                service_url=settings.watson_url,
                assistant_id=settings.watson_assistant_id,
            )
        else:
            logger.warning("watson_assistant_not_configured")
        client = OpenAI(api_key=settings.openai_api_key) if settings.openai_api_key else None
        return cls(watson=watson, openai_client=client, model=settings.openai_model)

    def get_answer(self, question: str, prompt: str = CHAT_PROMPT) -> str:
        if self.watson is None:
            return self._ask_openai(question, prompt)

        # a fresh session per question; no conversation memory is kept
        session_id = self.watson.create_session()
        logger.info("watson_request")
        segments = extract_text_segments(self.watson.message(session_id, question))
        if not segments:
            logger.info("watson_no_text_response")
            return self._ask_openai(question, prompt)

        response = " ".join(segments)
        if response == WATSON_NG:
            logger.info("watson_could_not_understand")
            return self._ask_openai(question, prompt)

        logger.info("watson_answered")
        return response

    def _ask_openai(self, question: str, prompt: str) -> str:
        if not self.client:
            logger.warning("openai_not_configured")
            return ANSWER_FAILED_TEXT

        logger.info("openai_request", extra={"model": self.model})
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt.format(question=question)}],
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices and choices[0].message else None
        if not content:
            return ANSWER_FAILED_TEXT
        return content.strip()
