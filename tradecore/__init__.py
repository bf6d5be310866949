"""Trade execution and portfolio consistency core.

- execution: the engine that validates and applies market trades
- persistence: gateway protocols and one-shot backend selection
- storage: in-memory fallback and durable SQL backends
- portfolio: read-side queries
- market_data: background price updater
- venue: process-owned wiring of all of the above
"""
