"""Lexicon Store: versioned, read-only collections of risk indicators.

Indicators are grouped by the engine category that consumes them:
- phishing: high/medium risk phrases and financial context words
- malware: file extensions, domains, injection and XSS patterns
- scam: romance, emergency, lottery, investment and impersonation phrases
- url: dictionary URL patterns and link shorteners
- emotional: social-engineering phrases, urgency words, emoji
"""

from hideout.lexicon.models import Lexicon
from hideout.lexicon.store import LexiconStore, DEFAULT_LEXICON_PATH

__all__ = ["Lexicon", "LexiconStore", "DEFAULT_LEXICON_PATH"]
