"""
Sync engine.

- lease: dataset-level mutual exclusion between runs
- existing_index: rows already present in the warehouse
- window: local-day boundaries of the backfill window
- evaluator: good/total counts of an SLO indicator over a day
- orchestrator: one run end to end
"""
