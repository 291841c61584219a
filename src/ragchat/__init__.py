"""ragchat — retrieval-augmented chat over a SQLite + sqlite-vec knowledge base."""

__version__ = "0.1.0"
