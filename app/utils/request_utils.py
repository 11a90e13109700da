"""
Request body helpers shared by the demo routes.
"""

from typing import Any, Dict

from fastapi import HTTPException, Request, status


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Read a JSON or form body into a plain dict.

    Non-object JSON bodies yield an empty dict; malformed JSON is a 400.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body."
            )
        return data if isinstance(data, dict) else {}

    form = await request.form()
    return {key: value for key, value in form.items()}
