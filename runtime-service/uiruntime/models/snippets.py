"""
Built-in snippet library.

Each snippet is JSON text holding one component or a list of components,
ready to be passed to the snippet inserter.
"""
from typing import Dict, List, Optional, TypedDict


class SnippetDefinition(TypedDict):
    key: str
    name: str
    description: str
    json: str


BUILTIN_SNIPPETS: List[SnippetDefinition] = [
    {
        "key": "login_form",
        "name": "Login form",
        "description": "Email and password inputs with a login button. Needs authentication settings.",
        "json": """
[
  {
    "type": "input",
    "id": "email_input",
    "label": "Email",
    "inputType": "email",
    "placeholder": "you@example.com"
  },
  {
    "type": "input",
    "id": "password_input",
    "label": "Password",
    "inputType": "password"
  },
  {
    "type": "button",
    "id": "login_button",
    "label": "Sign in",
    "variant": "primary",
    "action": {
      "type": "auth:login",
      "fields": {"email": "email_input", "password": "password_input"},
      "onError": {"type": "popup", "title": "Error", "message": "Invalid credentials."}
    }
  }
]
""",
    },
    {
        "key": "profile_card",
        "name": "User profile card",
        "description": "Avatar, name and email of the signed-in user.",
        "json": """
{
  "type": "card",
  "id": "profile_card",
  "padding": "$spacingMedium",
  "components": [
    {
      "type": "container",
      "id": "profile_row",
      "direction": "horizontal",
      "components": [
        {"type": "image", "id": "profile_avatar", "src": "{{session.user.avatar}}"},
        {
          "type": "container",
          "id": "profile_details",
          "components": [
            {"type": "text", "id": "profile_name", "content": "{{session.user.name}}"},
            {"type": "text", "id": "profile_email", "content": "{{session.user.email}}"}
          ]
        }
      ]
    }
  ]
}
""",
    },
    {
        "key": "logout_button",
        "name": "Logout button",
        "description": "Ends the simulated session and returns to the first screen.",
        "json": """
{
  "type": "button",
  "id": "logout_button",
  "label": "Sign out",
  "variant": "secondary",
  "showIf": "session.isLoggedIn",
  "action": {"type": "auth:logout"}
}
""",
    },
]

_SNIPPETS_BY_KEY: Dict[str, SnippetDefinition] = {s["key"]: s for s in BUILTIN_SNIPPETS}


def get_snippet(key: str) -> Optional[SnippetDefinition]:
    return _SNIPPETS_BY_KEY.get(key)
