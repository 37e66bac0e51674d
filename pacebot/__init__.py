"""
PaceBot - human-paced auto-replies for chat conversations.
"""

__version__ = "0.1.0"
__logo__ = "⏳"
