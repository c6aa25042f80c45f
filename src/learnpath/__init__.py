"""learnpath: adaptive placement, promotion ladder and lesson paths."""

__version__ = "0.1.0"
