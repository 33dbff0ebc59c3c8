"""
RouteWarden Server - Route Classification

This module derives a (resource, action) pair from an endpoint's method,
URI template and symbolic name, and builds the permission name, display name
and description the synchronizer stores for it.

Classification is a pure function of its inputs and the configured API prefix.
"""

import logging
import re
from typing import Optional, Tuple

import inflect

logger = logging.getLogger(__name__)

# Actions recognised as the last "."-segment of a route name, in display order
ACTION_ORDER = ['index', 'show', 'store', 'update', 'destroy', 'search', 'batch']

# URI fragments of authentication and utility routes
RESERVED_INFIXES = ['login', 'logout', 'register', 'password', 'email/verify']

SKIPPED_METHODS = {'HEAD', 'OPTIONS'}

# Resource tokens kept verbatim in permission names ("media" would singularize to "medium")
UNINFLECTED_RESOURCES = {'media'}

# Endings of nouns that are already singular ("access", "analysis")
SINGULAR_ENDINGS = ('ss', 'is')

# Singular nouns ending in -s whose trimmed form would still pluralize back to them
SINGULAR_WORDS = {
    'alias', 'atlas', 'bonus', 'bus', 'campus', 'canvas', 'census', 'corpus',
    'focus', 'gas', 'news', 'nexus', 'radius', 'series', 'species', 'status',
    'syllabus', 'virus',
}

ACTION_DISPLAY_NAMES = {
    'index': 'View All',
    'show': 'View',
    'store': 'Create',
    'update': 'Update',
    'destroy': 'Delete',
    'search': 'Search',
    'batch': 'Batch Operations',
}

ACTION_DESCRIPTIONS = {
    'index': "View list of all {resource}",
    'show': "View details of a specific {resource}",
    'store': "Create new {resource}",
    'update': "Update existing {resource}",
    'destroy': "Delete {resource}",
    'search': "Search through {resource}",
    'batch': "Perform batch operations on {resource}",
}

_inflector = inflect.engine()


def SnakeCase(value: str) -> str:
    """
    Convert camelCase / StudlyCase words to snake_case
    Already lowercase values (including hyphenated ones) are returned unchanged.
    """
    if value.islower() or not value:
        return value
    value = ''.join(word[:1].upper() + word[1:] for word in value.split())
    return re.sub(r'(.)(?=[A-Z])', r'\1_', value).lower()


def Singularize(word: str) -> str:
    """
    Singular form of a noun; words that are already singular are returned unchanged

    inflect assumes a plural input ("access" -> "acces"), so a candidate is only
    accepted when it pluralizes back to the original word.
    """
    if not word or word in SINGULAR_WORDS or word.endswith(SINGULAR_ENDINGS):
        return word
    singular = _inflector.singular_noun(word)
    if not singular or _inflector.plural_noun(singular) != word:
        return word
    return singular


def Pluralize(word: str) -> str:
    """Plural form of a noun; words that are already plural are returned unchanged"""
    if not word or word in UNINFLECTED_RESOURCES:
        return word
    if Singularize(word) != word:
        return word
    return _inflector.plural_noun(word)


def TitleWords(value: str) -> str:
    """Human title case: "blog_posts" -> "Blog Posts" """
    return re.sub(r'[-_]', ' ', value).title()


class RouteClassifier:
    """
    Classifies API routes into (resource, action) pairs

    Rules, in priority order:
    - URIs outside the API prefix are skipped
    - URIs containing a reserved infix (login, logout, ...) are skipped
    - HEAD and OPTIONS are skipped
    - a route name ending in a known action decides the action
    - otherwise the action comes from the method and the URI shape
    """

    def __init__(self, api_prefix: str = "api"):
        """
        Initialize route classifier

        Args:
            api_prefix: First URI segment of API routes (without slashes)
        """
        self.api_prefix = api_prefix.strip('/')

    def Classify(self, uri: str, method: str, name: Optional[str] = None) -> Optional[Tuple[str, str]]:
        """
        Classify one endpoint

        Args:
            uri: URI template, e.g. "/api/users/{user_id}"
            method: HTTP method
            name: Symbolic route name (optional)

        Returns:
            (resource, action) tuple, or None if the route is skipped
        """
        method = method.upper()
        path = uri.lstrip('/')

        if self.api_prefix:
            prefix = f"{self.api_prefix}/"
            if not path.startswith(prefix):
                return None
            clean_uri = path[len(prefix):]
        else:
            clean_uri = path

        if any(infix in path for infix in RESERVED_INFIXES):
            return None

        if method in SKIPPED_METHODS:
            return None

        resource = clean_uri.split('/')[0]
        if not resource:
            return None

        action = self.DetermineAction(method, clean_uri, name)
        return resource, action

    def DetermineAction(self, method: str, clean_uri: str, name: Optional[str] = None) -> str:
        """
        Determine the action from the route name, or from the method and URI shape

        Args:
            method: HTTP method (upper case)
            clean_uri: URI with the API prefix removed
            name: Symbolic route name (optional)

        Returns:
            str: Action name
        """
        if name and '.' in name:
            last_part = name.split('.')[-1]
            if last_part in ACTION_ORDER:
                return last_part

        if method == 'GET':
            if 'search' in clean_uri:
                return 'search'
            return 'show' if '{' in clean_uri else 'index'

        if method == 'POST':
            if 'search' in clean_uri:
                return 'search'
            if 'batch' in clean_uri:
                return 'batch'
            return 'store'

        if method in ('PUT', 'PATCH'):
            return 'batch' if 'batch' in clean_uri else 'update'

        if method == 'DELETE':
            return 'batch' if 'batch' in clean_uri else 'destroy'

        return 'unknown'

    @staticmethod
    def PermissionName(resource: str, action: str) -> str:
        """
        Build the permission name "resource.action"

        Examples:
            ("users", "show") -> "user.show"
            ("media", "index") -> "media.index"
        """
        if resource in UNINFLECTED_RESOURCES:
            resource_part = resource
        else:
            resource_part = Singularize(SnakeCase(resource))
        return f"{resource_part}.{SnakeCase(action)}"

    @staticmethod
    def ResourceDisplayName(resource: str) -> str:
        """Human plural resource name: "users" -> "Users", "blog_post" -> "Blog Posts" """
        return TitleWords(Pluralize(resource))

    @staticmethod
    def DisplayName(resource: str, action: str) -> str:
        """Display name such as "View All Users" """
        action_name = ACTION_DISPLAY_NAMES.get(action, TitleWords(action))
        return f"{action_name} {RouteClassifier.ResourceDisplayName(resource)}"

    @staticmethod
    def Description(resource: str, action: str, method: str, uri: str) -> str:
        """Description such as "View list of all Users via GET api/users" """
        resource_name = RouteClassifier.ResourceDisplayName(resource)
        template = ACTION_DESCRIPTIONS.get(action)
        if template:
            base_description = template.format(resource=resource_name)
        else:
            base_description = f"Perform {action} action on {resource_name}"
        return f"{base_description} via {method.upper()} {uri}"


def ClassifierFromSettings(db_manager) -> RouteClassifier:
    """
    Build a classifier for the API prefix stored in the settings table

    Args:
        db_manager: DatabaseManager instance

    Returns:
        RouteClassifier
    """
    session = db_manager.GetSession()
    try:
        api_prefix = db_manager.GetSetting(session, "api_prefix")
    finally:
        session.close()
    return RouteClassifier(api_prefix)
