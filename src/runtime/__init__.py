# path: src/runtime/__init__.py

"""
Runtime wiring package for the agent body.

Holds the process entrypoint and the periodic-task error guard that
stitch together:
- the agent core (agent.runtime.AgentRuntime)
- monitoring (EventBus, JSONL history, TUI dashboard)

Usage:
    python -m runtime.agent_runtime_main
"""
