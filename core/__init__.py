"""Core domain modules.

This package contains the ledger engine building blocks:

- types: users, holdings, limit orders, transactions and notifications
- valuation: net worth, profit/loss and USD/TRY conversion
- market_data: live quotes (CoinGecko, TCMB, simulated) behind a price oracle
- orders: limit order state machine, order service and pending-order sweep
- settlement: atomic trade settlement, market trades and balance refills
- persistence: persistence boundary (interfaces)
- storage: in-memory and PostgreSQL implementations of the persistence boundary

The HTTP surface lives in `api/` and the database schema in `db/`.
"""
