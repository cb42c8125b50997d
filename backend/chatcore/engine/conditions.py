"""
Condition evaluation for flow triggers and condition nodes.

A condition is (field, operator, value). A list of conditions holds only if
every condition holds; an empty list never holds, so a condition trigger
without conditions cannot fire.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from chatcore.schemas.chatbot import Condition, FlowTrigger
from chatcore.schemas.conversation import Conversation, utcnow

logger = logging.getLogger(__name__)


@dataclass
class EvaluationContext:
    """What a condition can look at: the current message and the conversation so far."""
    message: str
    conversation: Optional[Conversation] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    clock: Callable[[], datetime] = utcnow


def resolve_field(field_name: str, context: EvaluationContext) -> Any:
    if field_name == "user_input":
        return context.message
    if field_name == "message_count":
        return len(context.conversation.messages) if context.conversation else 0
    if field_name == "session_duration":
        if not context.conversation:
            return 0
        elapsed = context.clock() - context.conversation.started_at
        return int(elapsed.total_seconds() * 1000)
    return ""


def _evaluate_one(condition: Condition, context: EvaluationContext) -> bool:
    field_value = resolve_field(condition.field, context)
    actual = str(field_value).lower()
    expected = str(condition.value).lower()

    if condition.operator == "equals":
        # Exact comparison, no case folding or type coercion
        return field_value == condition.value
    if condition.operator == "contains":
        return expected in actual
    if condition.operator == "starts_with":
        return actual.startswith(expected)
    if condition.operator == "ends_with":
        return actual.endswith(expected)

    logger.debug(f"Unknown condition operator '{condition.operator}' - treating as false")
    return False


def evaluate(conditions: List[Condition], context: EvaluationContext) -> bool:
    if not conditions:
        return False
    return all(_evaluate_one(condition, context) for condition in conditions)


def parse_trigger_conditions(trigger: FlowTrigger) -> List[Condition]:
    """Conditions of a "condition" trigger.

    Explicit `conditions` win. Otherwise `value` carries the condition,
    either as JSON (one object or a list of objects) or in the compact
    form "field:operator:value". Anything else yields no conditions, which
    never matches.
    """
    if trigger.conditions:
        return list(trigger.conditions)

    raw = (trigger.value or "").strip()
    if not raw:
        return []

    if raw[0] in "[{":
        try:
            data = json.loads(raw)
            items = data if isinstance(data, list) else [data]
            return [Condition.model_validate(item) for item in items]
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid condition trigger value {raw[:80]!r}: {e}")
            return []

    parts = raw.split(":", 2)
    if len(parts) == 3 and parts[0].strip() and parts[1].strip():
        return [Condition(field=parts[0].strip(), operator=parts[1].strip(), value=parts[2])]

    logger.warning(f"Unrecognised condition trigger value {raw[:80]!r}")
    return []
