"""
Momory - persistent memory for conversational agents.

Momory stores what an agent learns across sessions and hands back only what
matters for the current message:
- Deduplicated, embedded memory records in SQLite
- Top-K similarity retrieval under a token budget
- Decay, summarization and pruning of aging memories
"""

__version__ = "0.1.0"

from momory.config.schemas import MomoryConfig
from momory.errors import Result, SaveOutcome, SaveStatus
from momory.memory.manager import MemoryManager

__all__ = [
    "__version__",
    "MomoryConfig",
    "MemoryManager",
    "Result",
    "SaveOutcome",
    "SaveStatus",
]
