# Interfaces (Abstract Contracts)
# Persistence implementations live in services/
from .repositories import UsageRepository

__all__ = [
    "UsageRepository",
]
