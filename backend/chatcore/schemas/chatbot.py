"""Chatbot configuration as read by the engine (flows, knowledge base, AI settings).

Stored chatbot documents use camelCase keys (fallbackMessage, isActive,
inputType...). Every model accepts both camelCase and snake_case and dumps
camelCase when serialised by alias.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TriggerType(str, Enum):
    KEYWORD = "keyword"
    INTENT = "intent"
    BUTTON = "button"
    CONDITION = "condition"


class NodeType(str, Enum):
    MESSAGE = "message"
    CONDITION = "condition"
    INPUT = "input"
    ACTION = "action"
    DELAY = "delay"


class ActionType(str, Enum):
    COLLECT_EMAIL = "collect_email"
    COLLECT_PHONE = "collect_phone"
    REDIRECT = "redirect"
    WEBHOOK = "webhook"


class Condition(CamelModel):
    field: str = ""
    operator: str = ""
    value: Any = ""


class Button(CamelModel):
    text: str
    value: Optional[str] = None
    action: str = "reply"  # reply | url | phone | email
    url: Optional[str] = None


class Position(CamelModel):
    x: float = 0
    y: float = 0


# ---------------------------------------------------------------------------
# Actions (content of an "action" node)
# ---------------------------------------------------------------------------

class ActionBase(CamelModel):
    message: Optional[str] = None


class CollectEmailAction(ActionBase):
    type: Literal["collect_email"] = "collect_email"


class CollectPhoneAction(ActionBase):
    type: Literal["collect_phone"] = "collect_phone"


class RedirectAction(ActionBase):
    type: Literal["redirect"] = "redirect"
    url: Optional[str] = None


class WebhookAction(ActionBase):
    type: Literal["webhook"] = "webhook"
    url: Optional[str] = None


class UnknownAction(ActionBase):
    """Any action type the engine has no handler for."""
    type: str = "unknown"


def _type_tag(known: set):
    def tag(value: Any) -> str:
        raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
        return raw if raw in known else "unknown"
    return tag


FlowAction = Annotated[
    Union[
        Annotated[CollectEmailAction, Tag("collect_email")],
        Annotated[CollectPhoneAction, Tag("collect_phone")],
        Annotated[RedirectAction, Tag("redirect")],
        Annotated[WebhookAction, Tag("webhook")],
        Annotated[UnknownAction, Tag("unknown")],
    ],
    Discriminator(_type_tag({t.value for t in ActionType})),
]


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class NodeBase(CamelModel):
    id: str
    connections: List[str] = Field(default_factory=list)
    position: Optional[Position] = None
    # Explicit entry marker; takes precedence over the leaf-message heuristic
    is_entry: bool = False


class MessageContent(CamelModel):
    text: Optional[str] = None
    buttons: Optional[List[Button]] = None


class MessageNode(NodeBase):
    type: Literal["message"] = "message"
    content: MessageContent = Field(default_factory=MessageContent)


class ConditionContent(CamelModel):
    condition: Optional[Condition] = None


class ConditionNode(NodeBase):
    type: Literal["condition"] = "condition"
    content: ConditionContent = Field(default_factory=ConditionContent)


class InputValidation(CamelModel):
    required: bool = False
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None


class InputContent(CamelModel):
    input_type: str = "text"  # text | email | phone | number | file
    validation: Optional[InputValidation] = None


class InputNode(NodeBase):
    type: Literal["input"] = "input"
    content: InputContent = Field(default_factory=InputContent)


class ActionContent(CamelModel):
    action: Optional[FlowAction] = None


class ActionNode(NodeBase):
    type: Literal["action"] = "action"
    content: ActionContent = Field(default_factory=ActionContent)


class DelayContent(CamelModel):
    delay: int = 0  # milliseconds


class DelayNode(NodeBase):
    type: Literal["delay"] = "delay"
    content: DelayContent = Field(default_factory=DelayContent)


class UnknownNode(NodeBase):
    """Node of a type this engine does not execute (e.g. "webhook")."""
    type: str = "unknown"
    content: Dict[str, Any] = Field(default_factory=dict)


FlowNode = Annotated[
    Union[
        Annotated[MessageNode, Tag("message")],
        Annotated[ConditionNode, Tag("condition")],
        Annotated[InputNode, Tag("input")],
        Annotated[ActionNode, Tag("action")],
        Annotated[DelayNode, Tag("delay")],
        Annotated[UnknownNode, Tag("unknown")],
    ],
    Discriminator(_type_tag({t.value for t in NodeType})),
]


# ---------------------------------------------------------------------------
# Flows, knowledge base, AI
# ---------------------------------------------------------------------------

class FlowTrigger(CamelModel):
    type: str
    value: str = ""
    conditions: Optional[List[Condition]] = None


class Flow(CamelModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    is_active: bool = True
    trigger: FlowTrigger
    nodes: List[FlowNode] = Field(default_factory=list)

    def get_node(self, node_id: str):
        return next((node for node in self.nodes if node.id == node_id), None)


class KnowledgeBaseEntry(CamelModel):
    id: str
    question: str
    answer: str
    keywords: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    is_active: bool = True
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class AIConfig(CamelModel):
    enabled: bool = False
    provider: Optional[str] = None  # openai | anthropic | custom
    model: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=150, ge=1, le=4000)
    system_prompt: Optional[str] = None
    fallback_to_rules: bool = True


class RateLimitSettings(CamelModel):
    enabled: bool = True
    requests_per_minute: int = 60
    requests_per_hour: int = 1000


class IntegrationSettings(CamelModel):
    domains: List[str] = Field(default_factory=list)
    allowed_origins: List[str] = Field(default_factory=list)
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    rate_limiting: RateLimitSettings = Field(default_factory=RateLimitSettings)


class BotSettings(CamelModel):
    greeting: str = "Hello! How can I help you today?"
    fallback_message: str = "I'm sorry, I didn't understand that. Could you please rephrase?"
    collect_email: bool = False
    collect_phone: bool = False
    language: str = "en"
    response_delay: int = 1000


class ChatbotConfig(CamelModel):
    """Read-only view of a chatbot for one message."""
    id: str
    user_id: str
    name: str = ""
    is_active: bool = True
    config: BotSettings = Field(default_factory=BotSettings)
    flows: List[Flow] = Field(default_factory=list)
    knowledge_base: List[KnowledgeBaseEntry] = Field(default_factory=list)
    ai: AIConfig = Field(default_factory=AIConfig)
    integration: IntegrationSettings = Field(default_factory=IntegrationSettings)

    @property
    def fallback_message(self) -> str:
        return self.config.fallback_message
