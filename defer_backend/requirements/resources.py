"""
Resource collaborators: asset URL resolution and themed script lookup.

Both are small callables the registry and injector are handed, so a host
with its own static pipeline can swap them out.
"""

import os
import re
from typing import Iterable, Optional

_ABSOLUTE_URL_PATTERN = re.compile(r'^(?:[a-z][a-z0-9+.-]*:|//)', re.IGNORECASE)

# Sub-directories of a theme searched for scripts, in order.
THEME_SCRIPT_DIRS = ('javascript', 'js')


class StaticPathResolver:
    """Map a registered file identifier to the URL used in src/href."""

    def __init__(self, base_url: str = '/'):
        self.base_url = base_url.rstrip('/')

    def __call__(self, path: str) -> str:
        if _ABSOLUTE_URL_PATTERN.match(path) or path.startswith('/'):
            return path
        return f'{self.base_url}/{path}'


class ThemeResourceLoader:
    """
    Find theme files on disk.

    Themes live in `themes_dir/<theme>/`. Found files are returned as
    `themes/<theme>/<subdir>/<file>` so the registry's theme ordering
    recognises them.
    """

    def __init__(self, themes_dir: str, themes: Iterable[str] = ('default',), url_prefix: str = 'themes'):
        self.themes_dir = themes_dir
        self.themes = list(themes)
        self.url_prefix = url_prefix

    def find_themed_javascript(self, name: str) -> Optional[str]:
        """Return the path of `name`.js in the first theme that has it, else None."""
        filename = name if name.endswith('.js') else f'{name}.js'
        for theme in self.themes:
            for subdir in THEME_SCRIPT_DIRS:
                if os.path.isfile(os.path.join(self.themes_dir, theme, subdir, filename)):
                    return '/'.join((self.url_prefix, theme, subdir, filename))
        return None
