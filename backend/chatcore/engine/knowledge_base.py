"""
Knowledge-base ranking: pick the FAQ entry that best answers a message.

score = (0.6 * question overlap + 0.4 * keyword hit ratio) * entry.confidence

An entry wins only with a score strictly above the current best AND strictly
above MIN_SCORE. Entries are scanned in stored order, so on equal scores the
first one seen is kept.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from chatcore.engine.text_matcher import keyword_hit_ratio, word_overlap_score
from chatcore.schemas.chatbot import KnowledgeBaseEntry
from chatcore.schemas.processing import ProcessingResult, Stage

logger = logging.getLogger(__name__)

QUESTION_WEIGHT = 0.6
KEYWORD_WEIGHT = 0.4
MIN_SCORE = 0.3


@dataclass
class KnowledgeBaseMatch:
    entry: KnowledgeBaseEntry
    score: float


class KnowledgeBaseRanker:

    def score(self, message: str, entry: KnowledgeBaseEntry) -> float:
        question_score = word_overlap_score(entry.question, message)
        keyword_score = keyword_hit_ratio(message, entry.keywords)
        combined = QUESTION_WEIGHT * question_score + KEYWORD_WEIGHT * keyword_score
        return combined * entry.confidence

    def rank(self, message: str, entries: List[KnowledgeBaseEntry]) -> Optional[KnowledgeBaseMatch]:
        best: Optional[KnowledgeBaseMatch] = None
        best_score = 0.0

        for entry in entries:
            if not entry.is_active:
                continue

            score = self.score(message, entry)
            if score > best_score and score > MIN_SCORE:
                best_score = score
                best = KnowledgeBaseMatch(entry=entry, score=score)

        if best:
            logger.debug(f"KB match: entry={best.entry.id} score={best.score:.3f}")
        return best

    def process(self, message: str, entries: List[KnowledgeBaseEntry]) -> Optional[ProcessingResult]:
        if not entries:
            return None

        match = self.rank(message, entries)
        if match is None:
            return None

        return ProcessingResult(
            content=match.entry.answer,
            confidence=min(match.score, 1.0),
            kb_entry_id=match.entry.id,
            stage=Stage.KNOWLEDGE_BASE,
        )
