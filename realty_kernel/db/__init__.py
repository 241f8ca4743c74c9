"""SQLAlchemy base classes, engine management and immutability listeners."""
