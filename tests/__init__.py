"""
Test suite for team-orchestrator.

Agents are scripted (helpers.ScriptedAgent) and tools record their calls
(helpers.RecordingTool), so every scheduling decision is deterministic.
"""
