"""
Layout component: the HTML document shell around every page.
"""

from typing import Any, Dict, Optional

from .base import Component


class Layout(Component):
    """Wrap page content with head, header bar and toast region."""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        show_header: bool = True,
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            user: `request.state.user` of the signed-in caller (optional)
            show_header: Whether to render the header bar
        """
        self.title = title
        self.content = content
        self.user = user
        self.show_header = show_header

    def render(self) -> str:
        header_html = self._render_header() if self.show_header else ""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body>
    {header_html}
    <div id="toast-region" class="toast-region" role="status" aria-live="polite" aria-atomic="true"></div>
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{self.escape(self.title)} - Salaysay</title>
    <link rel="stylesheet" href="/static/css/salaysay.css?v=1">
    <script src="/static/js/salaysay.js?v=1" defer></script>
    """

    def _render_header(self) -> str:
        if not self.user:
            return """
    <header class="app-header">
        <span class="app-header__brand">Salaysay</span>
        <a class="button button--primary" href="/auth/login">Sign in with Google</a>
    </header>"""
        name = self.user.get("name") or ""
        email = self.user.get("email") or ""
        role = self.user.get("role") or ""
        return f"""
    <header class="app-header">
        <span class="app-header__brand">Salaysay</span>
        <span class="app-header__user">
            {self.escape(name)}
            <span class="app-header__email">{self.escape(email)}</span>
            <span class="{self.classes('role-badge', role_badge_reviewer=role == 'reviewer')}">{self.escape(role)}</span>
        </span>
        <a class="button button--ghost" href="/auth/logout">Sign out</a>
    </header>"""
