"""
Centralized template configuration for the guard demo.
"""

import os
from fastapi.templating import Jinja2Templates

APP_DIR = os.path.dirname(os.path.dirname(__file__))


def get_templates():
    """
    Get the Jinja2 templates instance.
    Autoescaping is on for .html templates, so any value already escaped by
    the request guard must be wrapped in Markup before rendering.
    """
    return Jinja2Templates(directory=os.path.join(APP_DIR, "templates"))


templates = get_templates()
