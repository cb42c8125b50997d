"""
Message Processing Pipeline: one response per inbound message.

================================================================================
STAGE ORDER (FIXED PRIORITY, FIRST NON-EMPTY RESULT WINS)
================================================================================

1. Flows           author scripts, first matching active flow
2. Knowledge base  best FAQ entry above the confidence floor
3. AI              only when the chatbot has AI enabled
4. Fallback        the chatbot's fallbackMessage at confidence 0.1, never fails

Results are never blended across stages. A stage that raises is logged and
treated as "no match", so once a message is accepted a response always
exists.
================================================================================
"""
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from chatcore.ai.responder import AIResponder
from chatcore.core.exceptions import StageFailure
from chatcore.engine.conditions import EvaluationContext
from chatcore.engine.flow_interpreter import FlowInterpreter
from chatcore.engine.knowledge_base import KnowledgeBaseRanker
from chatcore.schemas.chatbot import ChatbotConfig
from chatcore.schemas.conversation import Conversation
from chatcore.schemas.processing import ProcessingResult, Stage

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.1


class MessageProcessingPipeline:

    def __init__(
        self,
        flow_interpreter: Optional[FlowInterpreter] = None,
        kb_ranker: Optional[KnowledgeBaseRanker] = None,
        ai_responder: Optional[AIResponder] = None,
    ):
        self.flow_interpreter = flow_interpreter or FlowInterpreter()
        self.kb_ranker = kb_ranker or KnowledgeBaseRanker()
        self.ai_responder = ai_responder or AIResponder()

    async def process(
        self,
        message: str,
        chatbot: ChatbotConfig,
        conversation: Optional[Conversation] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProcessingResult:
        started = time.perf_counter()
        context = EvaluationContext(message=message, conversation=conversation, metadata=metadata or {})

        result = await self._run_stage(
            Stage.FLOW, lambda: self._sync(self.flow_interpreter.process, message, chatbot.flows, context)
        )

        if result is None:
            result = await self._run_stage(
                Stage.KNOWLEDGE_BASE, lambda: self._sync(self.kb_ranker.process, message, chatbot.knowledge_base)
            )

        if result is None and chatbot.ai.enabled:
            result = await self._run_stage(
                Stage.AI, lambda: self.ai_responder.generate(message, chatbot.ai, conversation)
            )

        if result is None:
            result = ProcessingResult(
                content=chatbot.fallback_message,
                confidence=FALLBACK_CONFIDENCE,
                ai_generated=False,
                stage=Stage.FALLBACK,
            )

        result.processing_time = round((time.perf_counter() - started) * 1000, 3)
        logger.info(
            f"Chatbot {chatbot.id}: answered by {result.stage.value} stage "
            f"(confidence={result.confidence:.2f}, {result.processing_time:.1f}ms)"
        )
        return result

    async def _run_stage(
        self, stage: Stage, run: Callable[[], Awaitable[Optional[ProcessingResult]]]
    ) -> Optional[ProcessingResult]:
        try:
            return await run()
        except Exception as e:
            failure = StageFailure(stage.value, f"{type(e).__name__}: {e}")
            logger.error(f"❌ {failure} - continuing with next stage", exc_info=True)
        return None

    @staticmethod
    async def _sync(func, *args) -> Optional[ProcessingResult]:
        return func(*args)
