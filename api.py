# api.py
import os
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from llm import HANDLER_VERSION, fallback_response, parse_request, recommend_gifts

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Gift Ideas")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# registered after CORSMiddleware so it wraps preflight answers too
@app.middleware("http")
async def handler_version(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-GiftIdeas-Handler"] = HANDLER_VERSION  # deploy/version check
    return response


@app.get("/health")
def health():
    return {"status": "ok", "handlerVersion": HANDLER_VERSION}


def _unset_reason(result):
    # meta.reason is only meaningful on fallback answers
    if result.meta is not None and result.meta.reason is None:
        return {"meta": {"reason"}}
    return None


@app.post("/")
@app.post("/giftIdeas")
async def gift_ideas(request: Request):
    name = "them"
    try:
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Request body is not JSON; using defaults.")
            body = {}

        gift_request = parse_request(body)
        name = gift_request.recipient_name
        result = await run_in_threadpool(recommend_gifts, gift_request)
    except Exception:
        logger.exception("handler error")
        result = fallback_response(name, "error")

    return JSONResponse(status_code=200, content=result.model_dump(exclude=_unset_reason(result)))


@app.options("/")
@app.options("/giftIdeas")
def preflight():
    return Response(status_code=204)


@app.api_route("/", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
@app.api_route("/giftIdeas", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Use POST"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")), log_level="info")
