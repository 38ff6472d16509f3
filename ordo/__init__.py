# ordo — Two-phase plant scheduler built on a small constraint-propagation engine.

__version__ = "0.1.0"
