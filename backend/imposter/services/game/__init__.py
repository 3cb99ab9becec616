"""Round orchestration engine.

Pure rules (turn arithmetic, tallying, matching) and the transactional round
operations that HTTP routes and socket handlers call into, keeping transport
concerns separated from core game mechanics.
"""
