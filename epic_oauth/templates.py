"""HTML templates for the local callback server.

Pages are plain str.format templates; literal CSS braces are doubled.
Anything inserted into a page goes through html.escape first.

Theme colors:
- Background: #F4F7FA (cool grey)
- Primary: #B5285B (Epic raspberry)
- Primary hover: #98204B
- Text: #1B1F24
- Secondary text: #5B6570
- Border: #DDE3E9
"""

import html
import json
from typing import Optional

import jwt

from epic_oauth.jwt_utils import decode_id_token

_BASE_STYLE = """
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
               background: #F4F7FA; margin: 0; padding: 40px 16px; color: #1B1F24; }}
        .container {{ background: white; padding: 40px; border-radius: 12px; box-shadow: 0 4px 24px rgba(0,0,0,0.06);
                     max-width: 760px; margin: 0 auto; border: 1px solid #DDE3E9; }}
        h1 {{ margin: 0 0 12px; font-size: 24px; font-weight: 600; }}
        h2 {{ margin: 28px 0 8px; font-size: 18px; font-weight: 600; }}
        h3 {{ margin: 20px 0 8px; font-size: 15px; font-weight: 600; color: #5B6570; }}
        p {{ color: #5B6570; margin: 0 0 24px; }}
        pre {{ background: #F4F7FA; border: 1px solid #DDE3E9; border-radius: 8px; padding: 12px;
              overflow-x: auto; font-size: 13px; }}
        button {{ padding: 14px 24px; background: #B5285B; color: white; border: none; border-radius: 8px;
                 font-size: 15px; font-weight: 600; cursor: pointer; }}
        button:hover {{ background: #98204B; }}
"""

HOME_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Epic OAuth Demo</title>
    <style>""" + _BASE_STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>Welcome!</h1>
        <p>To authenticate with Epic, please click the button below:</p>
        <button onclick="location.href='{initialization_path}'">Authenticate with Epic</button>
    </div>
</body>
</html>
"""

SUCCESS_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authentication successful - Epic OAuth Demo</title>
    <style>""" + _BASE_STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>Authentication successful!</h1>
        <p>You can close this window.</p>
        {token_section}
        {profile_section}
    </div>
</body>
</html>
"""

TOKEN_SECTION = """
        <h2>Review token below</h2>
        <pre>{token}</pre>
        <h3>Decoded ID Token</h3>
        <pre>{decoded_id_token}</pre>
"""

PROFILE_SECTION = """
        <h2>Profile Information</h2>
        <pre>{profile}</pre>
"""


def _pretty(value) -> str:
    return html.escape(json.dumps(value, indent=2))


def render_home_page(initialization_path: str) -> str:
    return HOME_PAGE.format(initialization_path=html.escape(initialization_path, quote=True))


def render_success_page(token: dict, profile: Optional[dict] = None, show_token: bool = False) -> str:
    """Render the page shown after a successful token exchange.

    The token (and its decoded ID token) is only included when show_token
    is set. The profile section is included whenever a profile exists.
    """
    token_section = ""
    if show_token:
        decoded = None
        id_token = token.get("id_token")
        if id_token:
            try:
                decoded = decode_id_token(id_token)
            except jwt.InvalidTokenError:
                decoded = None
        token_section = TOKEN_SECTION.format(
            token=_pretty(token),
            decoded_id_token=_pretty(decoded) if decoded is not None else "(no decodable ID token)",
        )

    profile_section = PROFILE_SECTION.format(profile=_pretty(profile)) if profile else ""

    return SUCCESS_PAGE.format(token_section=token_section, profile_section=profile_section)
