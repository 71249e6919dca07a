"""Redis-like data structures and a Redis-protocol server on the engine."""