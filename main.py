"""
Console entry point for the senior-living discovery agent.

Runs the full discovery conversation in the terminal against the
configured model and scheduling service. Without OPENAI_API_KEY every
reply uses the built-in fallback text, which is enough to walk through
the stages.

Usage:
    Interactive:  python main.py
    Scripted:     python main.py --scenario discovery
"""

import argparse
import asyncio
import uuid

from discovery_agent.agents.orchestrator import DiscoveryOrchestrator
from discovery_agent.config import settings
from discovery_agent.schemas.discovery_schema import DiscoveryResponse

BLUE = "\033[94m"
GREEN = "\033[92m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

MAX_INPUT_LENGTH = 500

SCENARIOS: dict[str, list[str]] = {
    "discovery": [
        "Hello",
        "I'm John Smith from Tampa, looking for my mom Mary",
        "She fell last month and we got worried",
        "Her safety when she's alone",
        "We're all stressed and visiting more often",
        "She lives alone in her house",
        "She reads and watches the news",
        "She loves gardening",
        "She stopped driving",
        "Yes, we talked about it",
        "She's nervous but open",
        "My brother and I",
        "Safety and good food",
        "Help with medication",
        "Within three months",
        "That sounds lovely",
        "Sure, I'd like to visit",
        "Yes, Wednesday at 5pm works",
        "john dot smith at gmail dot com",
        "A friend told me about you",
    ],
}


def _print_reply(response: DiscoveryResponse) -> None:
    print(f"{GREEN}{BOLD}[{settings.business.guide_name}]{RESET} {GREEN}{response.text}{RESET}")
    meta = response.metadata
    print(f"{DIM}  >> stage={meta.stage.value} status={meta.response_status.value}{RESET}")


async def _run_scenario(orchestrator: DiscoveryOrchestrator, name: str) -> None:
    user_id = f"console-{uuid.uuid4().hex[:8]}"
    for step in SCENARIOS[name]:
        print(f"\n{BLUE}[You] {RESET}{step}")
        _print_reply(await orchestrator.process_message(user_id, step))
    await orchestrator.wait_for_background_tasks()
    print(f"\n{DIM}Session: {orchestrator.get_session_info(user_id)}{RESET}")


async def _run_interactive(orchestrator: DiscoveryOrchestrator) -> None:
    user_id = f"console-{uuid.uuid4().hex[:8]}"
    _print_reply(await orchestrator.process_message(user_id, ""))
    loop = asyncio.get_running_loop()
    while True:
        user_input = (await loop.run_in_executor(None, input, f"\n{BLUE}[You] {RESET}")).strip()
        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit", "q"):
            print(f"\n{DIM}Session ended.{RESET}")
            break
        _print_reply(await orchestrator.process_message(user_id, user_input[:MAX_INPUT_LENGTH]))
    await orchestrator.wait_for_background_tasks()


def main() -> None:
    parser = argparse.ArgumentParser(description="Senior-living discovery agent console")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default=None,
        help="Auto-play a scripted conversation instead of interactive mode",
    )
    args = parser.parse_args()

    print(f"{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  {settings.business.facility_name.upper()} DISCOVERY - Console{RESET}")
    print(f"{BOLD}  Type 'quit' to exit{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")

    orchestrator = DiscoveryOrchestrator.from_settings()
    if args.scenario:
        asyncio.run(_run_scenario(orchestrator, args.scenario))
    else:
        asyncio.run(_run_interactive(orchestrator))


if __name__ == "__main__":
    main()
