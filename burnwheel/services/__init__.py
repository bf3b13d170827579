"""Services Layer — the imperative shell around the pure core.

Invariants:
    - Services own IO: database writes, ledger and venue calls, locks
    - Domain decisions are delegated to core/ functions

Design Decisions:
    - Explicit constructor injection (state, lock, repository, clients) over globals,
      so tests assemble engines with fakes (ADR: impureim sandwich)
"""
