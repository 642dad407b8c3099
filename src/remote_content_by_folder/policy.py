"""Folder-name based classification of remote content policy."""

from __future__ import annotations

import logging
import re

from .constants import ALLOW_PREF, BLOCK_PREF
from .errors import ConfigError
from .log import debug
from .models import Policy, RuleSet

logger = logging.getLogger(__name__)


def compile_expression(expression: str, pref_name: str) -> re.Pattern[str] | None:
    """Compile a folder-name expression.

    Returns None for an empty expression, which never matches. Raises
    ConfigError when the expression is not a valid regular expression.
    """
    if not expression:
        return None
    try:
        return re.compile(expression, re.IGNORECASE)
    except re.error as e:
        raise ConfigError(pref_name, expression, str(e)) from e


def expression_matches(expression: str, folder_name: str, pref_name: str) -> bool:
    """Test one rule against a folder name; invalid rules never match."""
    try:
        pattern = compile_expression(expression, pref_name)
    except ConfigError as e:
        logger.error("%s", e)
        return False

    if pattern is None:
        debug(logger, 2, "%s is empty, not testing", pref_name)
        return False

    if pattern.search(folder_name):
        debug(logger, 2, '%s regexp "%s" matched folder name "%s"', pref_name, expression, folder_name)
        return True
    debug(logger, 2, '%s regexp "%s" did not match folder name "%s"', pref_name, expression, folder_name)
    return False


def classify(folder_name: str, rules: RuleSet) -> Policy:
    """Return the policy the rules assign to messages in ``folder_name``."""
    if rules.block_first and expression_matches(rules.block_regexp, folder_name, BLOCK_PREF):
        return Policy.BLOCK

    if expression_matches(rules.allow_regexp, folder_name, ALLOW_PREF):
        return Policy.ALLOW

    if not rules.block_first and expression_matches(rules.block_regexp, folder_name, BLOCK_PREF):
        return Policy.BLOCK

    return Policy.NONE
