"""Finds hashtags, mentions, email addresses, and URLs in note text."""

import re
from typing import List

from notesdb.models import Entities

HASHTAG_RE = re.compile(r'#[A-Za-z0-9_]+')
MENTION_RE = re.compile(r'@[A-Za-z0-9_]+')
URL_RE = re.compile(r'\b(?:https?|ftp|file)://[-A-Z0-9+&@#/%?=~_|!:,.;]*[-A-Z0-9+&@#/%=~_|]', re.IGNORECASE)
EMAIL_RE = re.compile(r'[A-Z0-9._-]+@[A-Z0-9.-]+\.[A-Z]{2,4}', re.IGNORECASE)


def _without(pattern: re.Pattern, text: str) -> str:
    # replace with a space so neighboring text stays separated
    return pattern.sub(' ', text)


def find_hashtags(text: str) -> List[str]:
    """Returns hashtags such as ``#foo``, ignoring anything that is part of a URL (e.g. ``http://x.com/#bar``)."""
    return HASHTAG_RE.findall(_without(URL_RE, text))


def find_mentions(text: str) -> List[str]:
    """Returns mentions such as ``@carol``, ignoring anything that is part of an email address."""
    return MENTION_RE.findall(_without(EMAIL_RE, text))


def find_emails(text: str) -> List[str]:
    return EMAIL_RE.findall(text)


def find_urls(text: str) -> List[str]:
    return URL_RE.findall(text)


def extract(text: str) -> Entities:
    """Returns all the entities found in the text.

    Matches are returned in the order they appear, exactly as written (no case changes), and duplicates are kept.
    None is treated like an empty string.
    """
    text = text or ''
    return Entities(hashtags=find_hashtags(text),
                    mentions=find_mentions(text),
                    emails=find_emails(text),
                    urls=find_urls(text))
