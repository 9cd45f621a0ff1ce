"""
Duelcore - Turn-based card battle combat engine.

Two sides take turns playing cards into positional slots; a single
combat session resolves the cards' effects against HP-bearing
characters and walks a stage's enemy sequence to victory or defeat.
"""

__version__ = "0.1.0"
