"""
Flow Interpreter: trigger matching and node execution for visual flows.

================================================================================
EXECUTION MODEL
================================================================================

A flow is a graph of typed nodes stored as one ordered list; `connections`
are node ids resolved inside that list. One inbound message executes at most
one path through the graph and yields at most one response:

- message    terminal, returns its text (and buttons)
- condition  follows connections[0] when true, connections[1] when false
- input      captures the CURRENT message as lead data, always acknowledges
- action     collect_email / collect_phone / redirect / generic acknowledgement
- delay      returns a "please wait" placeholder carrying the delay hint;
             the engine never sleeps, the consuming layer schedules the send

A structurally broken flow (no start node, dangling connection, cycle)
yields None and the pipeline moves on to the knowledge base.
================================================================================
"""
import logging
from typing import List, Optional, Set, assert_never

from chatcore.engine import text_matcher
from chatcore.engine.conditions import EvaluationContext, evaluate, parse_trigger_conditions
from chatcore.schemas.chatbot import (
    ActionNode,
    Button,
    CollectEmailAction,
    CollectPhoneAction,
    ConditionNode,
    DelayNode,
    Flow,
    FlowNode,
    InputNode,
    MessageNode,
    RedirectAction,
    TriggerType,
    UnknownAction,
    UnknownNode,
    WebhookAction,
)
from chatcore.schemas.processing import LeadData, ProcessingResult, Stage

logger = logging.getLogger(__name__)

FLOW_CONFIDENCE = 0.9
RETRY_CONFIDENCE = 0.8
GENERIC_ACTION_CONFIDENCE = 0.7

DEFAULT_MESSAGE_TEXT = "Hello!"
INPUT_ACKNOWLEDGEMENT = "Thank you for providing that information!"
DELAY_PLACEHOLDER = "Please wait a moment..."


class FlowInterpreter:

    def match_trigger(self, message: str, flow: Flow, context: EvaluationContext) -> bool:
        trigger = flow.trigger

        if trigger.type == TriggerType.KEYWORD.value:
            return text_matcher.contains_keyword(message, trigger.value)

        if trigger.type == TriggerType.INTENT.value:
            return text_matcher.matches_any_keyword(message, trigger.value)

        if trigger.type == TriggerType.CONDITION.value:
            return evaluate(parse_trigger_conditions(trigger), context)

        # Button triggers need a click event, never free text; unknown types never match
        return False

    def find_matching_flow(
        self, message: str, flows: List[Flow], context: EvaluationContext
    ) -> Optional[Flow]:
        """First active flow, in stored order, whose trigger matches. Later flows are not evaluated."""
        for flow in flows:
            if not flow.is_active:
                continue
            if self.match_trigger(message, flow, context):
                logger.debug(f"Flow '{flow.name}' ({flow.id}) triggered")
                return flow
        return None

    def process(self, message: str, flows: List[Flow], context: EvaluationContext) -> Optional[ProcessingResult]:
        flow = self.find_matching_flow(message, flows, context)
        if flow is None:
            return None
        return self.execute_flow(flow, message, context)

    def find_entry_node(self, flow: Flow) -> Optional[FlowNode]:
        """
        Start node of a flow.

        An explicitly flagged entry node wins. Otherwise the first message node
        without outgoing connections is used (the historical convention of the
        flow builder), falling back to the first node of the list.
        """
        if not flow.nodes:
            return None

        flagged = next((node for node in flow.nodes if node.is_entry), None)
        if flagged is not None:
            return flagged

        leaf_message = next(
            (node for node in flow.nodes if isinstance(node, MessageNode) and not node.connections),
            None,
        )
        return leaf_message or flow.nodes[0]

    def execute_flow(self, flow: Flow, message: str, context: EvaluationContext) -> Optional[ProcessingResult]:
        start = self.find_entry_node(flow)
        if start is None:
            logger.debug(f"Flow {flow.id} has no nodes - no response")
            return None
        return self.execute_node(start, flow, message, context, visited=set())

    def execute_node(
        self,
        node: FlowNode,
        flow: Flow,
        message: str,
        context: EvaluationContext,
        visited: Optional[Set[str]] = None,
    ) -> Optional[ProcessingResult]:
        visited = visited if visited is not None else set()
        if node.id in visited:
            logger.warning(f"Cycle detected in flow {flow.id} at node {node.id}")
            return None
        visited.add(node.id)

        if isinstance(node, MessageNode):
            return self._result(
                flow, node,
                content=node.content.text or DEFAULT_MESSAGE_TEXT,
                buttons=node.content.buttons,
            )

        elif isinstance(node, ConditionNode):
            conditions = [node.content.condition] if node.content.condition else []
            branch = 0 if evaluate(conditions, context) else 1
            if branch >= len(node.connections):
                return None
            next_node = flow.get_node(node.connections[branch])
            if next_node is None:
                logger.warning(f"Flow {flow.id}: node {node.id} points at missing node {node.connections[branch]}")
                return None
            return self.execute_node(next_node, flow, message, context, visited)

        elif isinstance(node, InputNode):
            lead = LeadData()
            if node.content.input_type == "email" and text_matcher.is_valid_email(message):
                lead.email = message
            elif node.content.input_type == "phone" and text_matcher.is_valid_phone(message):
                lead.phone = message
            return self._result(flow, node, content=INPUT_ACKNOWLEDGEMENT, lead_data=lead)

        elif isinstance(node, ActionNode):
            return self._execute_action(node, flow, message)

        elif isinstance(node, DelayNode):
            return self._result(flow, node, content=DELAY_PLACEHOLDER, delay=node.content.delay)

        elif isinstance(node, UnknownNode):
            logger.debug(f"Flow {flow.id}: node type '{node.type}' is not executable")
            return None

        else:
            assert_never(node)

    def _execute_action(self, node: ActionNode, flow: Flow, message: str) -> Optional[ProcessingResult]:
        action = node.content.action
        if action is None:
            logger.warning(f"Flow {flow.id}: action node {node.id} has no action")
            return None

        if isinstance(action, CollectEmailAction):
            if text_matcher.is_valid_email(message):
                return self._result(
                    flow, node,
                    content=action.message or "Thank you for your email!",
                    lead_data=LeadData(email=message),
                )
            return self._result(
                flow, node, content="Please provide a valid email address.", confidence=RETRY_CONFIDENCE
            )

        elif isinstance(action, CollectPhoneAction):
            if text_matcher.is_valid_phone(message):
                return self._result(
                    flow, node,
                    content=action.message or "Thank you for your phone number!",
                    lead_data=LeadData(phone=message),
                )
            return self._result(
                flow, node, content="Please provide a valid phone number.", confidence=RETRY_CONFIDENCE
            )

        elif isinstance(action, RedirectAction):
            return self._result(
                flow, node,
                content=action.message or "I'll redirect you now.",
                buttons=[Button(text="Continue", action="url", url=action.url)],
            )

        elif isinstance(action, (WebhookAction, UnknownAction)):
            return self._result(
                flow, node, content=action.message or "Action executed.", confidence=GENERIC_ACTION_CONFIDENCE
            )

        else:
            assert_never(action)

    @staticmethod
    def _result(
        flow: Flow,
        node: FlowNode,
        content: str,
        confidence: float = FLOW_CONFIDENCE,
        buttons: Optional[List[Button]] = None,
        lead_data: Optional[LeadData] = None,
        delay: Optional[int] = None,
    ) -> ProcessingResult:
        return ProcessingResult(
            content=content,
            confidence=confidence,
            flow_id=flow.id,
            node_id=node.id,
            buttons=buttons,
            lead_data=None if lead_data is None or lead_data.is_empty() else lead_data,
            delay=delay,
            stage=Stage.FLOW,
        )
