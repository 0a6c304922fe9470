"""Core vault logic: models, error kinds, account layout and state transitions.

This package contains pure business logic with no I/O dependencies
(no database, Redis, or network access). It is shared between the
live vault service (app/) and the price replay system (backtest/).
"""
