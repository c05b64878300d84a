"""
EduAI offline layer.

Response caching, background sync of quiz results, and lesson
recommendations for the EduAI learning platform.
"""

__version__ = "0.1.0"
