from typing import Any, Dict, Optional, Type

import structlog
from langchain_core.exceptions import OutputParserException
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from agent_memory.config import MemorySettings
from agent_memory.domain.errors import CollaboratorError
from agent_memory.domain.models import ConsolidationResponse
from agent_memory.infrastructure.observability.langfuse_tracing import traced

from .base import ResponseT, SummarizationCollaborator

logger = structlog.get_logger(__name__)


class LLMCollaborator(SummarizationCollaborator):
    """Collaborator backed by a LangChain chat model with structured output"""

    def __init__(
        self,
        model: BaseChatModel,
        overrides: Optional[Dict[Type[Any], BaseChatModel]] = None
    ):
        self.model = model
        # Per-response-model routing, e.g. a stronger model for pillar synthesis
        self.overrides = overrides or {}

    @classmethod
    def from_settings(cls, settings: MemorySettings) -> "LLMCollaborator":
        """Build an OpenAI-backed collaborator from settings"""

        common = {"temperature": settings.temperature}
        if settings.openai_api_key:
            common["api_key"] = settings.openai_api_key

        model = ChatOpenAI(model=settings.model_name, **common)
        overrides = {}
        if settings.consolidation_model_name != settings.model_name:
            overrides[ConsolidationResponse] = ChatOpenAI(
                model=settings.consolidation_model_name, **common
            )
        return cls(model, overrides)

    def _model_for(self, response_model: Type[Any]) -> BaseChatModel:
        return self.overrides.get(response_model, self.model)

    @traced("collaborator.generate")
    async def generate(self, prompt: str, response_model: Type[ResponseT]) -> ResponseT:
        """Query the chat model, constrained to response_model"""

        structured = self._model_for(response_model).with_structured_output(response_model)
        try:
            result = await structured.ainvoke([HumanMessage(content=prompt)])
        except OutputParserException as e:
            logger.warning("Unparseable collaborator output", response_model=response_model.__name__)
            raise CollaboratorError(f"Unparseable {response_model.__name__}: {e}", cause=e) from e

        if result is None:
            raise CollaboratorError(f"Empty {response_model.__name__} from model")
        return result
