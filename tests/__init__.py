"""
Test Suite for the Live-State Aggregator

- collection store, index and pollers
- row projection and view assembly
- schedules, refresh timer and stats snapshots
- configuration and service wiring
"""
