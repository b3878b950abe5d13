"""TON cells, bags of cells, hashmap dictionaries and wallet contract state init."""

__version__ = "0.1.0"

__all__ = ["boc", "builder", "cell", "contracts", "dictionary"]