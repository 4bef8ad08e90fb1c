"""
Repositories package — data-access layer.

Convention:
    - One file per aggregate (sessions.py, stage_logs.py, results.py,
      resources.py); all functions accept `AsyncSession` first
    - Use `flush()` internally; commits are owned by the caller
    - store.SqlPipelineStore composes those functions behind the
      PipelineStore contract in base.py; memory.InMemoryPipelineStore
      is the in-process equivalent
"""
