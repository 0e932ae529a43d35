"""IntentGuard: intent-scoped governance for code-editing agents.

Modules:
- ledger: durable intent ledger (active_intents.yaml)
- governance: pre-action gate (scope, ignore rules, mutation class, approval)
- intent_map: task -> file/symbol table with reconstruction on corruption
- trace: append-only provenance log (agent_trace.jsonl)
- governor: host-facing facade wiring the above into pre/post tool hooks
"""
