from discovery_agent.agents.orchestrator import DiscoveryOrchestrator
from discovery_agent.agents.response_generator import ResponseGenerator
from discovery_agent.agents.stage_handlers import DiscoveryStageHandlers
from discovery_agent.agents.visit_scheduler import VisitScheduler

__all__ = [
    "DiscoveryOrchestrator", "ResponseGenerator", "DiscoveryStageHandlers", "VisitScheduler",
]
