from discovery_agent.conversation.classifier import UtteranceClassifier
from discovery_agent.conversation.extractors import FactExtractor
from discovery_agent.conversation.record_store import (
    InMemoryRecordRepository,
    RecordRepository,
    RecordStore,
    RecordStoreError,
)
from discovery_agent.conversation.state_machine import (
    DiscoveryStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)
from discovery_agent.conversation.visit_steps import visit_step_status

__all__ = [
    "DiscoveryStateMachine",
    "InvalidTransitionError",
    "TransitionTrigger",
    "RecordStore",
    "RecordRepository",
    "InMemoryRecordRepository",
    "RecordStoreError",
    "UtteranceClassifier",
    "FactExtractor",
    "visit_step_status",
]
