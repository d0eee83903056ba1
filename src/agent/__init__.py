"""Agent core: intents, commands, reflexes, combat, snapshots."""
