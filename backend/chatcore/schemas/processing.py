from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from chatcore.schemas.chatbot import Button, CamelModel


class Stage(str, Enum):
    """Pipeline stage that produced a response, in priority order."""
    FLOW = "flow"
    KNOWLEDGE_BASE = "knowledge_base"
    AI = "ai"
    FALLBACK = "fallback"


class LeadData(CamelModel):
    """Contact details captured from the current message."""
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None

    def fields(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)

    def is_empty(self) -> bool:
        return not self.fields()


class ProcessingResult(CamelModel):
    """Pipeline output for one message. Not persisted on its own."""
    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    flow_id: Optional[str] = None
    node_id: Optional[str] = None
    kb_entry_id: Optional[str] = None
    ai_generated: bool = False
    lead_data: Optional[LeadData] = None
    buttons: Optional[List[Button]] = None
    attachments: Optional[List[Dict[str, Any]]] = None
    delay: Optional[int] = None
    processing_time: float = 0.0  # ms
    stage: Optional[Stage] = None

    def message_metadata(self) -> Dict[str, Any]:
        """Metadata stored on the bot message, camelCase like the rest of the log."""
        metadata = {
            "confidence": self.confidence,
            "flowId": self.flow_id,
            "nodeId": self.node_id,
            "kbEntryId": self.kb_entry_id,
            "aiGenerated": self.ai_generated,
            "processingTime": self.processing_time,
            "stage": self.stage.value if self.stage else None,
        }
        if self.buttons:
            metadata["buttons"] = [button.model_dump(by_alias=True, exclude_none=True) for button in self.buttons]
        if self.attachments:
            metadata["attachments"] = self.attachments
        if self.delay is not None:
            metadata["delay"] = self.delay
        return {key: value for key, value in metadata.items() if value is not None}
