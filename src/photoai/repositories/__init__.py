"""Repository layer.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from photoai.repositories.credit import CreditRepository
from photoai.repositories.generation_job import GenerationJobRepository
from photoai.repositories.pack import PackRepository
from photoai.repositories.trained_model import TrainedModelRepository

__all__ = [
    "CreditRepository",
    "GenerationJobRepository",
    "PackRepository",
    "TrainedModelRepository",
]
