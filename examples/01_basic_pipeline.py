"""
Basic usage example of file-api's request pipeline.

Demonstrates:
- Writing a handler against RequestContext
- Wrapping it with the standard layers (errors, logging, CORS)
- Serving it from FastAPI with as_endpoint
"""

from fastapi import FastAPI

from file_api import (
    NotFoundError,
    RequestContext,
    Response,
    as_endpoint,
    create_handler,
    success_response,
)

app = FastAPI(title="Basic Pipeline Example")

NOTES = {"1": "buy milk", "2": "write report"}


async def get_note(ctx: RequestContext) -> Response:
    """Return one note; unknown ids become a 404 envelope."""
    note_id = ctx.path_params["noteId"]
    if note_id not in NOTES:
        raise NotFoundError("Note")
    return success_response({"id": note_id, "text": NOTES[note_id]})


async def hello(ctx: RequestContext) -> Response:
    return success_response({"message": "Hello, World!"})


app.add_api_route("/", as_endpoint(create_handler(hello)), methods=["GET"])
app.add_api_route("/notes/{noteId}", as_endpoint(create_handler(get_note)), methods=["GET"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl http://localhost:8000/
    # curl http://localhost:8000/notes/1
    # curl http://localhost:8000/notes/9   -> {"error": "NOT_FOUND", ...}
